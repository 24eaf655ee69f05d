"""
Submission packaging.

Flattens a nested report document into an ordered list of multipart
fields. Every value in a document is one of four node kinds:

    scalar  -> one text field at its path ('true'/'false' for booleans)
    file    -> one binary part at its path, passed through untouched
    array   -> each element at '<path>[<index>]'
    record  -> each entry at '<path>.<key>' (bare key at the root)

So section1.team_members[2].cnic names the CNIC of the third team member.
Empty arrays and records produce no fields.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from werkzeug.datastructures import FileStorage

from impact_report.document import default_report, normalize_value, scalar_to_string


PATH_TOKEN = re.compile(r'([^.\[\]]+)|\[(\d+)\]')


class NodeKind(str, Enum):
    """Node kinds found in a report document."""
    SCALAR = 'scalar'
    FILE = 'file'
    ARRAY = 'array'
    RECORD = 'record'


def is_attachment(value: Any) -> bool:
    return isinstance(value, FileStorage)


def classify(value: Any) -> NodeKind:
    """Determine the node kind of a document value."""
    if is_attachment(value):
        return NodeKind.FILE
    if isinstance(value, dict):
        return NodeKind.RECORD
    if isinstance(value, (list, tuple)):
        return NodeKind.ARRAY
    return NodeKind.SCALAR


def join_path(path: str, key: Any) -> str:
    return f'{path}.{key}' if path else str(key)


def index_path(path: str, index: int) -> str:
    return f'{path}[{index}]'


class DocumentVisitor:
    """Dispatches each node of a document tree to a visit_<kind> method."""

    def visit(self, value: Any, path: str = ''):
        kind = classify(value)
        return getattr(self, f'visit_{kind.value}')(value, path)

    def visit_scalar(self, value: Any, path: str):
        raise NotImplementedError

    def visit_file(self, value: FileStorage, path: str):
        raise NotImplementedError

    def visit_array(self, value: List[Any], path: str):
        raise NotImplementedError

    def visit_record(self, value: Dict[str, Any], path: str):
        raise NotImplementedError


class FieldFlattener(DocumentVisitor):
    """Collects (path, value) pairs in document order."""

    def __init__(self):
        self.fields: List[Tuple[str, Any]] = []

    def visit_scalar(self, value, path):
        self.fields.append((path, scalar_to_string(value)))

    def visit_file(self, value, path):
        self.fields.append((path, value))

    def visit_array(self, value, path):
        for index, item in enumerate(value):
            self.visit(item, index_path(path, index))

    def visit_record(self, value, path):
        for key, item in value.items():
            self.visit(item, join_path(path, key))


class AttachmentStripper(DocumentVisitor):
    """Copies a document without its file attachments."""

    def visit_scalar(self, value, path):
        return value

    def visit_file(self, value, path):
        return None

    def visit_array(self, value, path):
        return [
            self.visit(item, index_path(path, index))
            for index, item in enumerate(value)
            if classify(item) is not NodeKind.FILE
        ]

    def visit_record(self, value, path):
        return {key: self.visit(item, join_path(path, key)) for key, item in value.items()}


@dataclass
class MultipartPayload:
    """Ordered multipart fields; one value per field name."""
    fields: List[Tuple[str, Any]] = field(default_factory=list)

    def __len__(self):
        return len(self.fields)

    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]

    def get(self, name: str, default: Any = None) -> Any:
        for field_name, value in self.fields:
            if field_name == name:
                return value
        return default

    @property
    def data(self) -> List[Tuple[str, str]]:
        return [(name, value) for name, value in self.fields if not is_attachment(value)]

    @property
    def files(self) -> List[Tuple[str, Tuple[str, Any, str]]]:
        return [
            (name, (value.filename or name, value.stream, value.mimetype or 'application/octet-stream'))
            for name, value in self.fields
            if is_attachment(value)
        ]

    def to_requests(self) -> Tuple[List[Tuple[str, str]], List[Tuple[str, Tuple[str, Any, str]]]]:
        """Split into the (data, files) arguments of requests.post."""
        return self.data, self.files


def flatten_document(document: Dict[str, Any]) -> MultipartPayload:
    """
    Flatten a report document into multipart fields.

    Args:
        document: Nested report document (may contain FileStorage values)

    Returns:
        MultipartPayload with fields in document order
    """
    flattener = FieldFlattener()
    flattener.visit(document)
    return MultipartPayload(flattener.fields)


def strip_attachments(document: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a document without file attachments, for JSON storage."""
    return AttachmentStripper().visit(document)


def parse_path(name: str) -> List[Any]:
    """
    Split a field name into keys (str) and indices (int).

    'section1.team_members[2].cnic' -> ['section1', 'team_members', 2, 'cnic']
    """
    segments = []
    for key, index in PATH_TOKEN.findall(name):
        segments.append(int(index) if index else key)
    return segments


def unflatten_fields(fields: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Re-nest flattened fields.

    Values come back as they were sent: strings for scalars, the original
    objects for files.
    """
    root: Dict[str, Any] = {}

    for name, value in fields:
        segments = parse_path(name)
        if not segments:
            continue

        container: Any = root
        for position, segment in enumerate(segments):
            is_last = position == len(segments) - 1
            next_container = None if is_last else ([] if isinstance(segments[position + 1], int) else {})

            if isinstance(segment, int):
                while len(container) <= segment:
                    container.append(None)
                if is_last:
                    container[segment] = value
                elif container[segment] is None:
                    container[segment] = next_container
                container = container[segment]
            else:
                if is_last:
                    container[segment] = value
                elif segment not in container:
                    container[segment] = next_container
                container = container[segment]

    return root


def _report_skeleton(template: Any) -> Any:
    """The default document with every collection emptied."""
    if isinstance(template, dict):
        return {key: _report_skeleton(value) for key, value in template.items()}
    if isinstance(template, list):
        return []
    return template


def restore_document(fields: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Rebuild a report document from flattened fields.

    Fields are re-nested and laid over an empty report whose collections
    are all empty, since an empty collection sends no fields. Scalars are
    recovered through normalize_value, the same step merge_section applies
    to patches, so a patched document survives flatten then restore.
    """
    return normalize_value(_report_skeleton(default_report()), unflatten_fields(fields))
