"""Lyric splitting: one item per sung syllable, aligned note by note."""

OPEN_BRACKETS = ("(", "（")
CLOSE_BRACKETS = (")", "）")
HOLD = "-"


def _is_cjk(ch: str) -> bool:
    return "一" <= ch <= "龥"


def split_lyric(lyric: str) -> list[str]:
    """
    Split a lyric line into note-aligned items.

    Rules:
      - each CJK character is its own item;
      - other characters group into words separated by spaces;
      - every ``-`` (held note) is its own item;
      - a comma sticks to the word before it;
      - bracketed text, ``(...)`` or ``（...）``, is one item without brackets.

    Example:
        >>> split_lyric("一闪-, twinkle (little star)")
        ['一', '闪', '-', ',', 'twinkle', 'little star']
    """
    result: list[str] = []
    word = ""
    bracket: str | None = None

    for ch in lyric:
        if bracket is not None:
            if ch in CLOSE_BRACKETS:
                if bracket:
                    result.append(bracket)
                bracket = None
            else:
                bracket += ch
            continue

        if ch in OPEN_BRACKETS:
            if word:
                result.append(word)
                word = ""
            bracket = ""
        elif ch == HOLD:
            if word:
                result.append(word)
                word = ""
            result.append(ch)
        elif _is_cjk(ch):
            if word:
                result.append(word)
            word = ch
        elif ch == ",":
            word += ch
        elif ch == " ":
            if word:
                result.append(word)
                word = ""
        else:
            word += ch

    if bracket:
        result.append(bracket)
    elif word:
        result.append(word)
    return result
