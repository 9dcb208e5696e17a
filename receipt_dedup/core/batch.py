"""
Duplicate warnings for a growing batch of uploaded images.
"""

import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .features import DecodeError, extract_features
from .models import DuplicateImageWarning, ImageFingerprint
from .scoring import score
from .settings import ImageThresholds, DEFAULT_IMAGE_THRESHOLDS
from .utils import normalize_file_name


@dataclass(frozen=True)
class UploadedFile:
    """Raw upload as handed over by the upload collector."""
    name: str
    data: bytes
    size: Optional[int] = None

    @property
    def file_size(self) -> int:
        return len(self.data) if self.size is None else self.size

    @property
    def identity(self) -> Tuple[str, int]:
        return normalize_file_name(self.name), self.file_size

    @classmethod
    def from_path(cls, path: Path) -> "UploadedFile":
        data = path.read_bytes()
        return cls(name=path.name, data=data, size=len(data))


def duplicate_pairs(new: Sequence[Optional[ImageFingerprint]],
                    existing: Sequence[Optional[ImageFingerprint]] = (),
                    thresholds: ImageThresholds = DEFAULT_IMAGE_THRESHOLDS
                    ) -> Iterator[Tuple[int, int, DuplicateImageWarning]]:
    """
    Score every new fingerprint against every existing one, then the new
    ones against each other.

    Yields (i, j, warning) for each duplicate, where i indexes `new` and j
    indexes `existing + new`. None entries (undecodable files) are skipped.
    Existing-vs-existing pairs are not scored.
    """
    offset = len(existing)
    for i, fp in enumerate(new):
        if fp is None:
            continue
        for j, other in enumerate(existing):
            if other is None:
                continue
            result = score(fp, other, thresholds)
            if result.is_duplicate:
                yield i, j, DuplicateImageWarning(fp.file_name, other.file_name,
                                                  round(result.confidence, 1))
    for i, j in itertools.combinations(range(len(new)), 2):
        a, b = new[i], new[j]
        if a is None or b is None:
            continue
        result = score(a, b, thresholds)
        if result.is_duplicate:
            yield i, offset + j, DuplicateImageWarning(a.file_name, b.file_name,
                                                       round(result.confidence, 1))


def compare_batches(new: Sequence[Optional[ImageFingerprint]],
                    existing: Sequence[Optional[ImageFingerprint]] = (),
                    thresholds: ImageThresholds = DEFAULT_IMAGE_THRESHOLDS
                    ) -> List[DuplicateImageWarning]:
    """Warnings for a newly added set of files against the accepted ones."""
    return [w for _, _, w in duplicate_pairs(new, existing, thresholds)]


@dataclass(frozen=True)
class _Entry:
    serial: int
    file: UploadedFile


class UploadBatch:
    """
    Accepted uploads plus the duplicate warnings derived from them.

    The batch is owned by the caller; warnings are recomputed on every add
    or remove and are never authoritative. Fingerprints are memoized by
    (normalized name, size) so each distinct file is decoded at most once.
    """

    def __init__(self, thresholds: ImageThresholds = DEFAULT_IMAGE_THRESHOLDS,
                 max_workers: int = 4, verbose: bool = False):
        """
        Args:
            thresholds: Scoring weights, gates and grid size
            max_workers: Threads used to decode the files of one addition
            verbose: Whether to print per-file debugging output
        """
        self.thresholds = thresholds
        self.max_workers = max(1, max_workers)
        self.verbose = verbose

        self._lock = threading.RLock()
        self._serials = itertools.count()
        self._entries: List[_Entry] = []
        self._fingerprints: Dict[Tuple[str, int], Optional[ImageFingerprint]] = {}
        self._inflight: Dict[Tuple[str, int], Future] = {}
        self._errors: Dict[Tuple[str, int], str] = {}
        # (serial_a, serial_b, warning)
        self._warnings: List[Tuple[int, int, DuplicateImageWarning]] = []

    @property
    def files(self) -> Tuple[UploadedFile, ...]:
        with self._lock:
            return tuple(e.file for e in self._entries)

    @property
    def warnings(self) -> Tuple[DuplicateImageWarning, ...]:
        with self._lock:
            return tuple(w for _, _, w in self._warnings)

    @property
    def undecodable(self) -> Dict[str, str]:
        """Batch files that produced no fingerprint, mapped to the decode error."""
        with self._lock:
            return {e.file.name: self._errors[e.file.identity]
                    for e in self._entries if e.file.identity in self._errors}

    def fingerprint_for(self, name: str) -> Optional[ImageFingerprint]:
        entry = self._find(name)
        if entry is None:
            return None
        with self._lock:
            return self._fingerprints.get(entry.file.identity)

    def _find(self, name: str) -> Optional[_Entry]:
        target = normalize_file_name(name)
        with self._lock:
            for entry in self._entries:
                if normalize_file_name(entry.file.name) == target:
                    return entry
        return None

    def _extract(self, file: UploadedFile) -> ImageFingerprint:
        return extract_features(file.data, file.name, file.file_size,
                                grid_size=self.thresholds.grid_size)

    def _compute_fingerprints(self, files: Iterable[UploadedFile]):
        """Decode all files concurrently and wait for every one of them."""
        owned: Dict[Tuple[str, int], Future] = {}
        waiting: Dict[Tuple[str, int], Future] = {}
        names: Dict[Tuple[str, int], str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for file in files:
                key = file.identity
                with self._lock:
                    if key in self._fingerprints or key in owned or key in waiting:
                        continue
                    names[key] = file.name
                    if key in self._inflight:
                        # Another addition is decoding the same file
                        waiting[key] = self._inflight[key]
                        continue
                    future = pool.submit(self._extract, file)
                    self._inflight[key] = future
                    owned[key] = future

        for key, future in itertools.chain(owned.items(), waiting.items()):
            is_owner = key in owned
            fp, reason = None, None
            try:
                fp = future.result()
            except DecodeError as e:
                reason = e.reason
            except Exception as e:
                # Any other failure only costs this one file
                reason = f"{type(e).__name__}: {e}"
            finally:
                with self._lock:
                    # Only finished results are ever stored
                    self._fingerprints.setdefault(key, fp)
                    if reason is not None:
                        self._errors.setdefault(key, reason)
                    if is_owner:
                        self._inflight.pop(key, None)
            if not is_owner:
                continue
            if reason is not None:
                print(f"[WARN] Could not decode {names[key]}: {reason}")
            elif self.verbose:
                print(f"  [DEBUG] Fingerprinted {fp.file_name} ({fp.file_size} bytes, "
                      f"mean brightness {fp.mean_brightness:.1f})")

    def add_files(self, files: Sequence[UploadedFile]) -> List[DuplicateImageWarning]:
        """
        Accept new files and score them against the batch.

        Undecodable files are kept in the batch but take no part in any
        comparison.

        Returns:
            Warnings raised by this addition
        """
        files = list(files)
        if not files:
            return []

        self._compute_fingerprints(files)

        with self._lock:
            existing = list(self._entries)
            new = [_Entry(next(self._serials), f) for f in files]
            pool = existing + new

            added = []
            for i, j, warning in duplicate_pairs(
                    [self._fingerprints.get(e.file.identity) for e in new],
                    [self._fingerprints.get(e.file.identity) for e in existing],
                    self.thresholds):
                self._warnings.append((new[i].serial, pool[j].serial, warning))
                added.append(warning)

            self._entries.extend(new)

        if self.verbose:
            print(f"  [DEBUG] Added {len(files)} file(s); batch holds {len(self._entries)}, "
                  f"{len(added)} new warning(s)")
        return added

    def remove_file(self, name: str) -> bool:
        """
        Remove the first file with this name and every warning that
        involves it. Warnings between the remaining files are kept.
        """
        entry = self._find(name)
        if entry is None:
            return False
        with self._lock:
            self._entries = [e for e in self._entries if e.serial != entry.serial]
            self._warnings = [(a, b, w) for a, b, w in self._warnings
                              if entry.serial not in (a, b)]
            key = entry.file.identity
            if not any(e.file.identity == key for e in self._entries):
                self._fingerprints.pop(key, None)
                self._errors.pop(key, None)
        if self.verbose:
            print(f"  [DEBUG] Removed {entry.file.name}")
        return True

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._warnings.clear()
            self._fingerprints.clear()
            self._errors.clear()
