"""Utilities specific to formatting the output of the CLI.
"""

from .lang import get_raw as _raw

import shutil
import sys
import re

from typing import List, Tuple, Union, Optional


class OutputTable:
    """Base class for formatting tables, rows are added and then the whole table is
    printed at once.
    """

    def __init__(self) -> None:
        self.rows: List[Union[None, Tuple[str, ...]]] = []

    def add(self, *cells) -> None:
        self.rows.append(tuple(map(str, cells)))

    def separator(self) -> None:
        self.rows.append(None)

    def print(self) -> None:
        raise NotImplementedError


class Output:
    """This class is used to abstract the output of the CLI. This particular class is
    abstract and the implementation differs depending on the desired output format.
    """

    def table(self) -> OutputTable:
        raise NotImplementedError

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        """Update the current task (or create it if not the case). The state is like
        'OK', 'FAILED' or 'INFO', the key is a message key of the language table.
        """
        raise NotImplementedError

    def finish(self) -> None:
        """Finish any active task.
        """
        raise NotImplementedError


class HumanOutput(Output):

    state_colors = {
        "OK": "\033[92m",
        "FAILED": "\033[31m",
        "WARN": "\033[33m",
        "INFO": "\033[34m",
    }

    def __init__(self, color: bool) -> None:
        self.color = color
        self.last_len: Optional[int] = None

    def table(self) -> OutputTable:
        return HumanTable()

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:

        term_width = shutil.get_terminal_size().columns
        if term_width < 20:
            return

        if state is None:
            header = "\r         "
        else:
            color = self.state_colors.get(state) if self.color else None
            if color is not None:
                header = f"\r[{color}{state:^6s}\033[0m] "
            else:
                header = f"\r[{state:^6s}] "

        msg = "" if key is None else _raw(key, kwargs)
        if len(msg) + 9 > term_width:
            msg = f"{msg[:term_width - 9 - 3]}..."

        # Pad with spaces to erase the end of a longer previous message.
        padding = ""
        if self.last_len is not None and self.last_len > len(msg):
            padding = " " * (self.last_len - len(msg))

        sys.stdout.write(f"{header}{msg}{padding}")
        sys.stdout.flush()
        self.last_len = len(msg)

    def finish(self) -> None:
        if self.last_len is not None:
            print()
            self.last_len = None


class HumanTable(OutputTable):

    def print(self) -> None:

        columns_length: List[int] = []
        for row in self.rows:
            if row is not None:
                for i, cell in enumerate(row):
                    if i == len(columns_length):
                        columns_length.append(len(cell))
                    elif columns_length[i] < len(cell):
                        columns_length[i] = len(cell)

        columns_lines = ["─" * length for length in columns_length]
        print("┌─{}─┐".format("─┬─".join(columns_lines)))

        for row in self.rows:
            if row is None:
                print("├─{}─┤".format("─┼─".join(columns_lines)))
            else:
                cells = list(row) + [""] * (len(columns_length) - len(row))
                print("│ {} │".format(" │ ".join(cell.ljust(length) for cell, length in zip(cells, columns_length))))

        print("└─{}─┘".format("─┴─".join(columns_lines)))


class MachineOutput(Output):

    escape_re = re.compile("[\\n\\r,]")

    @classmethod
    def print_escape(cls, s: str) -> str:
        return re.sub(cls.escape_re, lambda match: "\\" + {10: "n", 13: "r"}.get(ord(match.group()), match.group()), s)

    def print_function(self, name: str, *args: str, **kwargs) -> None:
        """Print a machine-readable line for a function with some parameters.
        """
        print(name, ":", ",".join((self.print_escape(arg) for arg in [
            *args,
            *(f"{k}={v}" for k, v in kwargs.items())  # Note, k should not contain "="
        ])), sep="")

    def table(self) -> OutputTable:
        return MachineTable(self)

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        self.print_function("task", str(state), str(key), **kwargs)

    def finish(self) -> None:
        pass


class MachineTable(OutputTable):

    def __init__(self, out: MachineOutput) -> None:
        super().__init__()
        self.out = out

    def print(self) -> None:
        self.out.print_function("table", str(len(self.rows)))
        for row in self.rows:
            if row is None:
                self.out.print_function("sep")
            else:
                self.out.print_function("row", *row)
