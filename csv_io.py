import csv
from typing import Iterable, Iterator, TextIO

from pydantic import ValidationError

from errors import MalformedRecordError
from models import ClientRecord, TransactionRecord

CLIENT_FIELDS = ("client", "available", "held", "total", "locked")


def read_transactions(stream: TextIO) -> Iterator[TransactionRecord]:
    """Yield transaction records from ``type, client, tx, amount`` rows.

    Headers and values are trimmed and rows may stop short of the
    ``amount`` column. Blank lines are skipped.
    """
    reader = csv.reader(stream)
    header = None
    for row in _rows(reader):
        cells = [cell.strip() for cell in row]
        if not any(cells):
            continue
        if header is None:
            header = cells
            continue
        if len(cells) > len(header):
            raise MalformedRecordError(reader.line_num, f"expected at most {len(header)} fields, got {len(cells)}")
        try:
            yield TransactionRecord.model_validate(dict(zip(header, cells)))
        except ValidationError as e:
            raise MalformedRecordError(reader.line_num, _summarize(e)) from e


def write_clients(stream: TextIO, clients: Iterable[ClientRecord]) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(CLIENT_FIELDS)
    for client in clients:
        writer.writerow([
            client.client,
            client.available,
            client.held,
            client.total,
            "true" if client.locked else "false",
        ])


def _rows(reader):
    # Undecodable bytes and oversized fields surface while reading, not parsing
    try:
        yield from reader
    except (csv.Error, UnicodeDecodeError) as e:
        raise MalformedRecordError(reader.line_num, str(e)) from e


def _summarize(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    )
