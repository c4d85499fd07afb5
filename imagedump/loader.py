# imagedump/loader.py

import logging
from typing import BinaryIO, Callable, Dict, List, Optional, Protocol
from xml.etree import ElementTree
from xml.parsers import expat

from .errors import IOFailure, TruncatedInput
from .formatter import entry_path
from .models import DirectoryEntry, Entry, FileEntry, PermissionStatus, SymlinkEntry

logger = logging.getLogger(__name__)

EntryCallback = Callable[[str, Entry], None]

# ошибки expat, которые означают обрыв входного файла
TRUNCATION_ERRORS = {
    expat.errors.codes[expat.errors.XML_ERROR_NO_ELEMENTS],
    expat.errors.codes[expat.errors.XML_ERROR_UNCLOSED_TOKEN],
    expat.errors.codes[expat.errors.XML_ERROR_PARTIAL_CHAR],
}


class ImageLoader(Protocol):
    def load(self, on_entry: EntryCallback) -> None:
        """
        Вызывает on_entry(parent_path, entry) для каждой записи образа,
        родитель всегда раньше потомков. Нормальный возврат означает
        конец обхода; TruncatedInput или IOFailure - его сбой.
        """


def parse_mode(text: str) -> int:
    """Права из 0755 или rwxr-xr-x (t/T в последней позиции - sticky-бит)"""
    text = text.strip()
    if text.isdigit():
        return int(text, 8)
    if len(text) != 9:
        raise ValueError(f"Malformed permission: {text!r}")
    mode = 0
    for char, bit in zip(text, (0o400, 0o200, 0o100, 0o40, 0o20, 0o10, 0o4, 0o2, 0o1)):
        if char != '-':
            mode |= bit
    if text[8] in 'tT':
        mode |= 0o1000
        if text[8] == 'T':
            mode &= ~0o1
    return mode


def parse_permission(text: str, acl_entries: Optional[List[str]] = None) -> PermissionStatus:
    """Разбор строки user:group:mode"""
    user, group, mode = text.rsplit(':', 2)
    return PermissionStatus(
        user_name=user,
        group_name=group,
        mode=parse_mode(mode),
        acl_entries=acl_entries or []
    )


def _text(element: ElementTree.Element, tag: str, default: str = '') -> str:
    child = element.find(tag)
    if child is None or child.text is None:
        return default
    return child.text


def _int(element: ElementTree.Element, tag: str) -> int:
    return int(_text(element, tag, '0'))


def parse_inode(element: ElementTree.Element) -> Optional[Entry]:
    """Запись образа из элемента <inode>; None для неизвестного типа"""
    inode_type = _text(element, 'type')
    inode_id = _int(element, 'id')
    name = _text(element, 'name')
    acl_entries = [acl.text for acl in element.findall('acls/acl') if acl.text]
    permission = parse_permission(_text(element, 'permission', '::0'), acl_entries)

    if inode_type == 'FILE':
        return FileEntry(
            id=inode_id,
            name=name,
            permission=permission,
            replication=_int(element, 'replication'),
            modification_time=_int(element, 'mtime'),
            access_time=_int(element, 'atime'),
            preferred_block_size=_int(element, 'preferredBlockSize'),
            blocks=[_int(block, 'numBytes') for block in element.findall('blocks/block')]
        )
    if inode_type == 'DIRECTORY':
        return DirectoryEntry(
            id=inode_id,
            name=name,
            permission=permission,
            modification_time=_int(element, 'mtime'),
            ns_quota=_int(element, 'nsquota'),
            ds_quota=_int(element, 'dsquota')
        )
    if inode_type == 'SYMLINK':
        return SymlinkEntry(
            id=inode_id,
            name=name,
            permission=permission,
            modification_time=_int(element, 'mtime'),
            access_time=_int(element, 'atime'),
            target=_text(element, 'target')
        )
    logger.warning(f"Skipping inode {inode_id} of unknown type {inode_type!r}")
    return None


class XmlImageLoader:
    """
    Загрузчик XML-представления образа (hdfs oiv -p XML).

    Секция INodeDirectorySection идёт после INodeSection, поэтому
    сначала читается весь файл, затем дерево обходится от корня.
    """

    def __init__(self, handle: BinaryIO):
        self.handle = handle
        self.entries: Dict[int, Entry] = {}
        self.children: Dict[int, List[int]] = {}

    def _read(self) -> None:
        """Чтение секций inode и каталогов"""
        try:
            for _, element in ElementTree.iterparse(self.handle, events=('end',)):
                if element.tag == 'inode':
                    entry = parse_inode(element)
                    if entry is not None:
                        self.entries[entry.id] = entry
                    element.clear()
                elif element.tag == 'directory':
                    parent = _int(element, 'parent')
                    self.children.setdefault(parent, []).extend(
                        int(child.text or '') for child in element.findall('child')
                    )
                    element.clear()
        except ElementTree.ParseError as e:
            if e.code in TRUNCATION_ERRORS:
                raise TruncatedInput(f"Input file ended unexpectedly: {e}") from e
            raise IOFailure(f"Malformed image: {e}") from e
        except (TypeError, ValueError) as e:
            raise IOFailure(f"Malformed image: {e}") from e
        except OSError as e:
            raise IOFailure(str(e)) from e

    def _root_id(self) -> Optional[int]:
        child_ids = {child for ids in self.children.values() for child in ids}
        roots = [
            entry_id for entry_id, entry in self.entries.items()
            if isinstance(entry, DirectoryEntry) and entry_id not in child_ids
        ]
        return min(roots) if roots else None

    def load(self, on_entry: EntryCallback) -> None:
        self._read()
        logger.info(f"Loaded {len(self.entries)} inodes from image")

        root_id = self._root_id()
        if root_id is None:
            logger.warning("Image has no root directory")
            return

        # обход в прямом порядке: (путь родителя, id)
        stack = [('', root_id)]
        seen = set()
        while stack:
            parent_path, entry_id = stack.pop()
            if entry_id in seen:
                raise IOFailure(f"Directory cycle at inode {entry_id}")
            seen.add(entry_id)
            entry = self.entries.get(entry_id)
            if entry is None:
                logger.warning(f"Skipping child {entry_id} of {parent_path or '/'}: inode not found")
                continue
            on_entry(parent_path, entry)
            if isinstance(entry, DirectoryEntry):
                path = entry_path(parent_path, entry.name)
                for child_id in reversed(self.children.get(entry_id, [])):
                    stack.append((path, child_id))
