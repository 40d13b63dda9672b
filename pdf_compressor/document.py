"""
document.py - PDF object graph access through pikepdf.

Everything that touches pikepdf lives here: parsing, per-stream snapshots,
applying replacements, metadata removal, duplicate merging, pruning and
serialization. pikepdf objects are not thread-safe, so callers take
StreamSnapshot copies before fanning work out to threads.
"""

import io
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterator, Optional, Set, Tuple

import pikepdf
from pikepdf import Array, Dictionary, Name, Pdf, Stream

from .errors import EmptyInput, ParseFailed, SerializeFailed

logger = logging.getLogger(__name__)

ObjGen = Tuple[int, int]

# Filters whose output only an image decoder can interpret
IMAGE_ONLY_FILTERS = frozenset({
    "/DCTDecode",
    "/JPXDecode",
    "/JBIG2Decode",
    "/CCITTFaxDecode",
})


@dataclass(frozen=True)
class StreamSnapshot:
    """Private, library-free copy of one stream for a worker thread."""
    objgen: ObjGen
    raw: bytes
    decoded: Optional[bytes] = None  # None if unfiltered or not invertible
    filters: Tuple[str, ...] = ()
    type: Optional[str] = None
    subtype: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    bits_per_component: Optional[int] = None
    colorspace: Optional[str] = None  # name, or family of an array colorspace
    colorspace_components: Optional[int] = None
    has_decode_array: bool = False
    image_mask: bool = False
    soft_mask: bool = False  # referenced as another image's /SMask or /Mask

    @property
    def size(self) -> int:
        return len(self.raw)


@dataclass(frozen=True)
class Replacement:
    """New payload and dictionary entries for a stream."""
    payload: bytes
    filter: str = "/FlateDecode"
    fields: Tuple[Tuple[str, object], ...] = ()
    # Prepend `filter` to the stream's current chain instead of replacing it
    chain_existing: bool = False


class Document:
    """
    Mutable PDF object graph for the duration of one compression call.

    Object identifiers are pikepdf objgen tuples. They stay valid until
    prune(), which re-serializes the graph and renumbers every object.
    """

    def __init__(self, pdf: Pdf, buffer: Optional[io.BytesIO] = None):
        self.pdf = pdf
        self._buffer = buffer
        self._pending_merges: Dict[ObjGen, ObjGen] = {}
        self._masks: Optional[Set[ObjGen]] = None

    @classmethod
    def open(cls, data: bytes) -> "Document":
        if not data:
            raise EmptyInput("PDF input")

        buffer = io.BytesIO(data)
        try:
            pdf = pikepdf.open(buffer)
        except pikepdf.PdfError as e:
            raise ParseFailed(f"Failed to load PDF: {e}") from e

        return cls(pdf, buffer)

    def close(self):
        self.pdf.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def object_count(self) -> int:
        return len(self.pdf.objects)

    @property
    def page_count(self) -> int:
        return len(self.pdf.pages)

    def streams(self) -> Iterator[Stream]:
        for obj in self.pdf.objects:
            if isinstance(obj, Stream):
                yield obj

    def snapshot(self, stream: Stream) -> StreamSnapshot:
        """Copy a stream's payload and the dictionary fields the policy reads."""
        raw = bytes(stream.read_raw_bytes())
        filters = _filter_names(stream.get("/Filter"))

        decoded = None
        if filters and not IMAGE_ONLY_FILTERS.intersection(filters):
            try:
                decoded = bytes(stream.read_bytes())
            except pikepdf.PdfError as e:
                logger.debug(f"Stream {stream.objgen}: cannot decode {filters}: {e}")

        colorspace, components = _colorspace_info(stream.get("/ColorSpace"))

        return StreamSnapshot(
            objgen=stream.objgen,
            raw=raw,
            decoded=decoded,
            filters=filters,
            type=_name(stream.get("/Type")),
            subtype=_name(stream.get("/Subtype")),
            width=_int(stream.get("/Width")),
            height=_int(stream.get("/Height")),
            bits_per_component=_int(stream.get("/BitsPerComponent")),
            colorspace=colorspace,
            colorspace_components=components,
            has_decode_array="/Decode" in stream,
            image_mask=stream.get("/ImageMask") is True,
            soft_mask=stream.objgen in self.mask_objgens(),
        )

    def mask_objgens(self) -> Set[ObjGen]:
        """Streams that some image uses as its /SMask or /Mask."""
        if self._masks is None:
            self._masks = set()
            for stream in self.streams():
                if stream.get("/Subtype") != Name.Image:
                    continue
                for key in ("/SMask", "/Mask"):
                    target = stream.get(key)
                    if isinstance(target, Stream) and target.is_indirect:
                        self._masks.add(target.objgen)
        return self._masks

    def apply(self, objgen: ObjGen, replacement: Replacement) -> None:
        """Write a replacement payload into the live stream."""
        stream = self.pdf.get_object(objgen)
        if not isinstance(stream, Stream):
            raise TypeError(f"Object {objgen} is not a stream")

        decode_parms = None
        if replacement.chain_existing:
            existing = list(_filter_names(stream.get("/Filter")))
            filters = Array([Name(f) for f in [replacement.filter] + existing])
            decode_parms = _shift_decode_parms(stream.get("/DecodeParms"), len(existing))
        else:
            filters = Name(replacement.filter)

        stream.write(replacement.payload, filter=filters, decode_parms=decode_parms)

        for key, value in replacement.fields:
            stream[key] = Name(value) if isinstance(value, str) else value

    def strip_metadata(self) -> int:
        """Unlink every /Type /Metadata object. Returns how many were found."""
        metadata = {
            obj.objgen for obj in self.pdf.objects
            if isinstance(obj, (Dictionary, Stream)) and obj.get("/Type") == Name.Metadata
        }
        if not metadata:
            return 0

        for container in self._containers():
            if isinstance(container, Array):
                for i in reversed(range(len(container))):
                    if _ref_objgen(container[i]) in metadata:
                        del container[i]
            else:
                for key in list(container.keys()):
                    if _ref_objgen(container.get(key)) in metadata:
                        del container[key]

        logger.debug(f"Unlinked metadata objects: {sorted(metadata)}")
        return len(metadata)

    def register_duplicates(self, dedup_map: Dict[ObjGen, ObjGen]) -> None:
        """Queue duplicate -> canonical pairs for the next compact()."""
        self._pending_merges.update(dedup_map)

    def compact(self) -> int:
        """
        Point references at duplicate streams to their canonical copy.

        Only pairs whose payload and dictionary (ignoring /Length) are
        identical are merged. Returns the number of streams merged.
        """
        merges = {}
        for duplicate, canonical in self._pending_merges.items():
            dup_obj = self.pdf.get_object(duplicate)
            can_obj = self.pdf.get_object(canonical)
            if not (isinstance(dup_obj, Stream) and isinstance(can_obj, Stream)):
                continue
            if _dict_key(dup_obj) != _dict_key(can_obj):
                continue
            if dup_obj.read_raw_bytes() != can_obj.read_raw_bytes():
                continue
            merges[duplicate] = can_obj
        self._pending_merges = {}

        if not merges:
            return 0

        for container in self._containers():
            if isinstance(container, Array):
                for i in range(len(container)):
                    target = merges.get(_ref_objgen(container[i]))
                    if target is not None:
                        container[i] = target
            else:
                for key in list(container.keys()):
                    target = merges.get(_ref_objgen(container.get(key)))
                    if target is not None:
                        container[key] = target

        return len(merges)

    def prune(self) -> int:
        """
        Drop unused page resources and every object unreachable from the root.

        Re-serializes and reloads the graph, which renumbers all objects.
        Returns how many objects disappeared.
        """
        before = self.object_count
        try:
            self.pdf.remove_unreferenced_resources()
        except pikepdf.PdfError as e:
            logger.warning(f"Could not remove unreferenced resources: {e}")

        buffer = io.BytesIO()
        self.pdf.save(
            buffer,
            compress_streams=False,
            stream_decode_level=pikepdf.StreamDecodeLevel.none,
            object_stream_mode=pikepdf.ObjectStreamMode.disable,
        )
        buffer.seek(0)
        reloaded = pikepdf.open(buffer)

        self.pdf.close()
        self.pdf = reloaded
        self._buffer = buffer
        self._pending_merges = {}
        self._masks = None

        return before - self.object_count

    def delete_zero_length_streams(self) -> int:
        """Remove empty streams from page /Contents. Returns references removed."""
        empty = {s.objgen for s in self.streams() if len(s.read_raw_bytes()) == 0}
        if not empty:
            return 0

        removed = 0
        for page in self.pdf.pages:
            page_obj = page.obj
            contents = page_obj.get("/Contents")
            if isinstance(contents, Array):
                kept = [c for c in contents if _ref_objgen(c) not in empty]
                if len(kept) != len(contents):
                    removed += len(contents) - len(kept)
                    page_obj.Contents = Array(kept)
            elif _ref_objgen(contents) in empty:
                del page_obj["/Contents"]
                removed += 1

        return removed

    def save(self) -> bytes:
        """Serialize the graph. Stream payloads are written verbatim."""
        buffer = io.BytesIO()
        try:
            self.pdf.save(
                buffer,
                compress_streams=False,
                stream_decode_level=pikepdf.StreamDecodeLevel.none,
                object_stream_mode=pikepdf.ObjectStreamMode.generate,
            )
        except pikepdf.PdfError as e:
            raise SerializeFailed(f"Failed to save: {e}") from e
        return buffer.getvalue()

    def _containers(self) -> Iterator[object]:
        """Yield the trailer, every top-level container and their direct children."""
        stack = [self.pdf.trailer]
        stack.extend(
            obj for obj in self.pdf.objects
            if isinstance(obj, (Dictionary, Stream, Array))
        )
        while stack:
            container = stack.pop()
            yield container
            if isinstance(container, Array):
                values = list(container)
            else:
                values = [container.get(key) for key in container.keys()]
            for value in values:
                if isinstance(value, (Dictionary, Array)) and not value.is_indirect:
                    stack.append(value)


def _filter_names(value) -> Tuple[str, ...]:
    if isinstance(value, Name):
        return (str(value),)
    if isinstance(value, Array):
        return tuple(str(f) for f in value if isinstance(f, Name))
    return ()


def _shift_decode_parms(value, filter_count: int):
    """DecodeParms for a chain with one extra filter in front."""
    if isinstance(value, Array):
        return Array([None] + list(value))
    if isinstance(value, Dictionary):
        return Array([None, value] + [None] * max(0, filter_count - 1))
    return None


def _ref_objgen(value) -> Optional[ObjGen]:
    if isinstance(value, pikepdf.Object) and value.is_indirect:
        return value.objgen
    return None


def _name(value) -> Optional[str]:
    return str(value) if isinstance(value, Name) else None


def _int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError, pikepdf.PdfError):
        return None


def _dict_key(stream: Stream) -> Dict[str, str]:
    key = {}
    for name in stream.keys():
        if name == "/Length":
            continue
        value = stream.get(name)
        key[name] = value.unparse() if isinstance(value, pikepdf.Object) else repr(value)
    return key


_COLORSPACE_COMPONENTS = {
    "/DeviceGray": 1,
    "/CalGray": 1,
    "/DeviceRGB": 3,
    "/CalRGB": 3,
    "/Lab": 3,
    "/DeviceCMYK": 4,
}


def _colorspace_info(value) -> Tuple[Optional[str], Optional[int]]:
    """Colorspace family name and component count, where known."""
    if isinstance(value, Array) and len(value) > 0:
        family = _name(value[0])
        if family == "/ICCBased" and len(value) > 1 and isinstance(value[1], Stream):
            return family, _int(value[1].get("/N"))
        return family, _COLORSPACE_COMPONENTS.get(family)
    family = _name(value)
    return family, _COLORSPACE_COMPONENTS.get(family)
