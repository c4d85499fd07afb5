# imagedump/formatter.py

import json
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import OutputConfig
from .errors import InvalidConfiguration, IOFailure, UnrecognizedEntryVariant
from .models import DirectoryEntry, Entry, FileEntry, Provenance, SymlinkEntry

DEFAULT_DELIMITER = '\t'
DELIMITED = 'delimited'
JSON = 'json'
SHAPES = (DELIMITED, JSON)

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# порядок колонок в режиме с разделителем
DELIMITED_FIELDS = (
    'Path',
    'Replication',
    'ModificationTime',
    'AccessTime',
    'PreferredBlockSize',
    'BlocksCount',
    'FileSize',
    'NSQUOTA',
    'DSQUOTA',
    'Permission',
    'UserName',
    'GroupName',
)

RECORD_FIELDS = (
    'InodeName',
    'Path',
    'ParentPath',
    'Type',
    'Replication',
    'ModificationTime',
    'AccessTime',
    'PreferredBlockSize',
    'BlocksCount',
    'FileSize',
    'NSQUOTA',
    'DSQUOTA',
    'Permission',
    'UserName',
    'GroupName',
    'Area',
    'ClusterName',
    'NameSpace',
    'Protocol',
    '@timestamp',
)


def get_timezone(name: Optional[str]) -> tzinfo:
    """Часовой пояс по имени, UTC по умолчанию"""
    if not name or name.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidConfiguration(f"Unknown time zone: {name}") from e


def format_datetime(value: datetime) -> str:
    return f"{value.strftime(TIMESTAMP_FORMAT)},{value.microsecond // 1000:03d}"


def format_timestamp(millis: int, tz: tzinfo = timezone.utc) -> str:
    """Время в миллисекундах от эпохи -> YYYY-MM-DD HH:MM:SS,mmm"""
    seconds, remainder = divmod(millis, 1000)
    try:
        value = datetime.fromtimestamp(seconds, tz).replace(microsecond=remainder * 1000)
    except (ValueError, OverflowError, OSError) as e:
        raise IOFailure(f"Timestamp out of range: {millis}") from e
    return format_datetime(value)


def parse_timestamp(text: str) -> datetime:
    """Обратное преобразование, без часового пояса"""
    return datetime.strptime(text, TIMESTAMP_FORMAT + ',%f')


def entry_path(parent_path: str, name: str) -> str:
    if not name:
        return parent_path or '/'
    if not parent_path or parent_path == '/':
        return '/' + name
    return parent_path.rstrip('/') + '/' + name


def escape_value(value: Any, delimiter: str = DEFAULT_DELIMITER) -> str:
    """
    Значение колонки в одну строку: переводы строк экранируются,
    значение с разделителем или кавычкой берётся в кавычки.
    """
    text = str(value).replace('\r', '\\r').replace('\n', '\\n')
    if delimiter in text or '"' in text:
        text = '"' + text.replace('"', '""') + '"'
    return text


def header(delimiter: str = DEFAULT_DELIMITER) -> str:
    return delimiter.join(DELIMITED_FIELDS)


class EntryFormatter:
    """
    Преобразует запись образа и путь её родителя в строку вывода.

    Набор полей одинаков для всех типов записей; неприменимые поля
    заполняются нулями, чтобы схема не зависела от типа.

    В режиме с разделителем значения проходят через escape_value():
    имя с переводом строки или разделителем не ломает строку вывода.
    """

    def __init__(
            self,
            shape: str = DELIMITED,
            delimiter: str = DEFAULT_DELIMITER,
            provenance: Optional[Provenance] = None,
            tz: Optional[tzinfo] = None,
            clock: Optional[Callable[[tzinfo], datetime]] = None
    ):
        if shape not in SHAPES:
            raise InvalidConfiguration(f"Unknown output shape: {shape}")
        if shape == DELIMITED and not delimiter:
            raise InvalidConfiguration("Delimiter must not be empty")
        self.shape = shape
        self.delimiter = delimiter
        self.provenance = provenance or Provenance()
        self.tz = tz or get_timezone(OutputConfig.TIMEZONE)
        self.clock = clock or datetime.now

    def _time(self, millis: int) -> str:
        return format_timestamp(millis, self.tz)

    def record(self, parent_path: str, entry: Entry) -> Dict[str, Any]:
        """Построение записи вывода с фиксированным набором полей"""
        if isinstance(entry, FileEntry):
            type_name = 'file'
            fields = {
                'Replication': entry.replication,
                'ModificationTime': self._time(entry.modification_time),
                'AccessTime': self._time(entry.access_time),
                'PreferredBlockSize': entry.preferred_block_size,
                'BlocksCount': entry.blocks_count,
                'FileSize': entry.size,
                'NSQUOTA': 0,
                'DSQUOTA': 0,
            }
            type_flag = '-'
        elif isinstance(entry, DirectoryEntry):
            type_name = 'directory'
            fields = {
                'Replication': 0,
                'ModificationTime': self._time(entry.modification_time),
                'AccessTime': self._time(0),
                'PreferredBlockSize': 0,
                'BlocksCount': 0,
                'FileSize': 0,
                'NSQUOTA': entry.ns_quota,
                'DSQUOTA': entry.ds_quota,
            }
            type_flag = 'd'
        elif isinstance(entry, SymlinkEntry):
            type_name = 'symlink'
            fields = {
                'Replication': 0,
                'ModificationTime': self._time(entry.modification_time),
                'AccessTime': self._time(entry.access_time),
                'PreferredBlockSize': 0,
                'BlocksCount': 0,
                'FileSize': 0,
                'NSQUOTA': 0,
                'DSQUOTA': 0,
            }
            type_flag = '-'
        else:
            raise UnrecognizedEntryVariant(
                f"No record layout for entry of type {type(entry).__name__}"
            )

        record: Dict[str, Any] = {
            'InodeName': entry.name,
            'Path': entry_path(parent_path, entry.name),
            'ParentPath': parent_path,
            'Type': type_name,
        }
        record.update(fields)

        permission = entry.permission
        acl_flag = '+' if permission.has_acl else ''
        record.update({
            'Permission': type_flag + permission.symbolic() + acl_flag,
            'UserName': permission.user_name,
            'GroupName': permission.group_name,
            'Area': self.provenance.area,
            'ClusterName': self.provenance.cluster_name,
            'NameSpace': self.provenance.namespace,
            'Protocol': self.provenance.protocol,
            '@timestamp': format_datetime(self.clock(self.tz)),
        })
        return record

    def format(self, parent_path: str, entry: Entry) -> str:
        record = self.record(parent_path, entry)
        if self.shape == JSON:
            return json.dumps(record, ensure_ascii=False)
        return self.delimiter.join(escape_value(record[name], self.delimiter) for name in DELIMITED_FIELDS)

    def header(self) -> Optional[str]:
        """Строка заголовка, только для режима с разделителем"""
        if self.shape != DELIMITED:
            return None
        return header(self.delimiter)
