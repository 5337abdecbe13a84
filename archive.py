import logging
import posixpath
import zipfile

logger = logging.getLogger(__name__)


class _ChunkSink:
    """Write-only, non-seekable target; zipfile falls back to data descriptors."""

    def __init__(self):
        self._chunks = bytearray()

    def write(self, data):
        self._chunks.extend(data)
        return len(data)

    def flush(self):
        pass

    def take(self):
        data = bytes(self._chunks)
        self._chunks.clear()
        return data


class BatchArchiver:
    """
    ZIP archive written entry by entry and handed out in pieces.

    Bytes are produced by append()/finalize() and collected with drain(),
    so only the entries not yet drained are held in memory.
    """

    def __init__(self, compresslevel=9):
        self._sink = _ChunkSink()
        self._zip = zipfile.ZipFile(
            self._sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=compresslevel
        )
        self._used_names = set()
        self._finalized = False
        self._closed = False
        self.entry_names = []

    @property
    def finalized(self):
        return self._finalized

    def _unique_name(self, entry_name):
        if entry_name not in self._used_names:
            return entry_name
        stem, ext = posixpath.splitext(entry_name)
        counter = 2
        while f"{stem}_{counter}{ext}" in self._used_names:
            counter += 1
        return f"{stem}_{counter}{ext}"

    def append(self, entry_name, data):
        """Add one entry and return the name it was stored under."""
        if self._finalized or self._closed:
            raise RuntimeError("Cannot append to a finalized archive")

        name = self._unique_name(entry_name)
        if name != entry_name:
            logger.info(f"Entry {entry_name} already exists, storing as {name}")
        self._zip.writestr(name, data)
        self._used_names.add(name)
        self.entry_names.append(name)
        return name

    def drain(self):
        return self._sink.take()

    def finalize(self):
        if self._finalized:
            return
        self._zip.close()
        self._finalized = True
        logger.debug(f"Archive finalized with {len(self.entry_names)} entries")

    def close(self):
        """Abandon an unfinished archive and drop any undrained bytes."""
        if self._closed:
            return
        self._closed = True
        if not self._finalized:
            self._zip.close()
        self._sink.take()
