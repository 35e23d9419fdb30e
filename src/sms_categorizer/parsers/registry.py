from sms_categorizer.parsers.bancolombia import BancolombiaParser
from sms_categorizer.parsers.base import BankParser
from sms_categorizer.parsers.daviplata import DaviplataParser
from sms_categorizer.parsers.generic import GenericParser
from sms_categorizer.parsers.nequi import NequiParser
from sms_categorizer.parsers.occidente import BancoOccidenteParser


class ParserRegistry:
    """Sender dispatch over a fixed, ordered set of bank parsers.

    When two parsers could claim a sender, the one registered first wins.
    """

    def __init__(
        self,
        parsers: tuple[BankParser, ...] | None = None,
        generic: GenericParser | None = None,
    ) -> None:
        if parsers is None:
            parsers = (
                BancolombiaParser(),
                BancoOccidenteParser(),
                NequiParser(),
                DaviplataParser(),
            )
        self._parsers = tuple(parsers)
        self._generic = generic or GenericParser()

    @property
    def parsers(self) -> tuple[BankParser, ...]:
        return self._parsers

    @property
    def generic(self) -> GenericParser:
        return self._generic

    def get_parser(self, sender_id: str | None) -> BankParser | None:
        for parser in self._parsers:
            if parser.can_handle(sender_id):
                return parser
        return None

    def can_generic_parse(self, body: str) -> bool:
        return self._generic.can_parse_body(body)

    def supported_banks(self) -> list[str]:
        return [parser.bank_name for parser in self._parsers]

    def all_sender_ids(self) -> list[str]:
        return [sender for parser in self._parsers for sender in parser.sender_ids]


default_registry = ParserRegistry()
