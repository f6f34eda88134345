from typing import Dict, Iterable, List

from pyboss._private.exceptions import UnknownSymbolError


class Tokenizer:
    """Maps the symbols of one side of a machine to small integers.

    Token 0 is reserved for the empty symbol '', and the distinct non-empty
    symbols get tokens 1, 2, ... in sorted order."""

    EMPTY = ''

    def __init__(self, symbols: Iterable[str]):
        self.tok2sym: List[str] = [self.EMPTY] + sorted(set(symbols) - {self.EMPTY})
        self.sym2tok: Dict[str, int] = {sym: tok for tok, sym in enumerate(self.tok2sym)}

    def empty_token(self) -> int:
        return 0

    def token(self, sym: str) -> int:
        try:
            return self.sym2tok[sym]
        except KeyError:
            raise UnknownSymbolError(sym) from None

    def symbol(self, tok: int) -> str:
        if not 0 <= tok < len(self.tok2sym):
            raise UnknownSymbolError(tok)
        return self.tok2sym[tok]

    def tokenize(self, seq: Iterable[str]) -> List[int]:
        return [self.token(sym) for sym in seq]

    def detokenize(self, toks: Iterable[int]) -> List[str]:
        return [self.symbol(tok) for tok in toks]

    def alphabet(self) -> List[str]:
        """The non-empty symbols, in token order."""
        return self.tok2sym[1:]

    def __len__(self):
        return len(self.tok2sym)

    def __contains__(self, sym):
        return sym in self.sym2tok

    def __repr__(self):
        return f"Tokenizer({self.alphabet()!r})"
