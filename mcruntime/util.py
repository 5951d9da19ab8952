"""Global utilities used internally. The functions can be used externally but upward
compatibility is not guaranteed unless explicitly specified.
"""

from datetime import datetime
import asyncio

from typing import Awaitable, Iterable, List, Tuple, TypeVar


T = TypeVar("T")


def calc_input_hash(input_stream, algorithm: str = "sha1", *, buffer_len: int = 8192) -> str:
    """Internal function to calculate the hex digest of an input stream.

    :param input_stream: The input stream that supports `readinto`.
    :param algorithm: Name of the hashlib algorithm, defaults to sha1.
    :param buffer_len: Internal buffer length, defaults to 8192
    :return: The hex digest string.
    """
    import hashlib
    h = hashlib.new(algorithm)
    b = bytearray(buffer_len)
    mv = memoryview(b)
    for n in iter(lambda: input_stream.readinto(mv), 0):
        h.update(mv[:n])
    return h.hexdigest()


def from_iso_date(raw: str) -> datetime:
    """Parse an ISO date as given by Mojang's metadata. A trailing 'Z' is accepted as
    an alias for the UTC offset because older interpreters don't parse it.
    """
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    return datetime.fromisoformat(raw)


class BatchError(Exception):
    """Raised by `settled` once all items of a batch are done and at least one of them
    has failed. The failures are kept in order of submission, each one associated to
    the label of its item.
    """

    def __init__(self, label: str, failures: List[Tuple[str, BaseException]]) -> None:
        super().__init__(label, failures)
        self.label = label
        self.failures = failures

    def __str__(self) -> str:
        lines = [f"{self.label}: {len(self.failures)} item(s) failed"]
        for item_label, error in self.failures:
            lines.append(f"  {item_label}: {error!r}")
        return "\n".join(lines)


async def settled(label: str, items: Iterable[Tuple[str, Awaitable[T]]]) -> List[T]:
    """Run all the given labelled awaitables concurrently and wait for every one of
    them to finish, successfully or not. Only then, if any item has failed, a
    `BatchError` is raised that contains every failure. A failing item never cancels
    its siblings.

    :param label: The label of the whole run, used in the error message.
    :param items: Iterable of (item label, awaitable) tuples.
    :return: The results of all items, in order of submission.
    :raises BatchError: If at least one item has failed.
    """

    labels = []
    awaitables = []
    for item_label, aw in items:
        labels.append(item_label)
        awaitables.append(aw)

    results = await asyncio.gather(*awaitables, return_exceptions=True)

    failures = []
    for item_label, result in zip(labels, results):
        if isinstance(result, BaseException):
            # Cancellation of the whole run must still go up as is.
            if isinstance(result, asyncio.CancelledError):
                raise result
            failures.append((item_label, result))

    if len(failures):
        raise BatchError(label, failures)

    return results

