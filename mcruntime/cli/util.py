"""Global utilities for the CLI.
"""


def format_size(n: float) -> str:
    """Return a size in bytes with suffix kB, MB, GB or B.
    The string is at most 8 chars unless the size exceed 1 TB.
    """
    if n < 1000:
        return f"{int(n)} B"
    elif n < 1000000:
        return f"{(int(n / 100) / 10):.1f} kB"
    elif n < 1000000000:
        return f"{(int(n / 100000) / 10):.1f} MB"
    else:
        return f"{(int(n / 100000000) / 10):.1f} GB"
