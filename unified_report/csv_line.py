from typing import List


def parse_csv_line(line: str) -> List[str]:
    """
    Split one physical CSV line into fields.

    Quoted fields may hold commas, and ``""`` inside quotes is a literal quote.
    An unterminated quote keeps collecting characters to the end of the line.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current))
    return fields
