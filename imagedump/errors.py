# imagedump/errors.py


class ImageDumpError(Exception):
    """Базовая ошибка выгрузки образа"""


class InvalidConfiguration(ImageDumpError, ValueError):
    """Некорректные параметры (размер пакета, приёмник, формат)"""


class UnrecognizedEntryVariant(ImageDumpError, TypeError):
    """Запись неизвестного типа дошла до форматирования"""


class TruncatedInput(ImageDumpError):
    """Входной файл закончился раньше времени"""


class IOFailure(ImageDumpError):
    """Прочие ошибки чтения образа"""


class SinkFailure(ImageDumpError):
    """Ошибка записи, сброса или закрытия приёмника"""
