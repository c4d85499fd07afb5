# main.py
import argparse
import logging
import sys
from typing import List, Optional

from imagedump.config import DatabaseConfig, LoggingConfig, OutputConfig
from imagedump.database import Database
from imagedump.errors import ImageDumpError, IOFailure, TruncatedInput
from imagedump.formatter import DELIMITED, JSON, EntryFormatter, get_timezone
from imagedump.loader import XmlImageLoader
from imagedump.writer import DatabaseWriter, SnapshotWriter

logger = logging.getLogger(__name__)

PROCESSORS = {
    'Delimited': DELIMITED,
    'JSON': JSON,
    'Database': JSON,
}


def setup_logging():
    """Настройка логирования"""
    logging.basicConfig(
        level = LoggingConfig.LEVEL,
        format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(LoggingConfig.FILE_PATH),
            logging.StreamHandler()
        ]
    )
    return logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Парсер аргументов командной строки"""
    parser = argparse.ArgumentParser(description='Convert a filesystem image dump into text records')
    parser.add_argument('-i', '--input', required=True, help='Image file (XML dump) to read')
    parser.add_argument('-o', '--output', default='-', help='Output file, "-" for stdout')
    parser.add_argument('-p', '--processor', default='Delimited', choices=sorted(PROCESSORS),
                        help='Output processor')
    parser.add_argument('--delimiter', default=OutputConfig.DELIMITER,
                        help='Column delimiter for the Delimited processor')
    parser.add_argument('--batch-size', type=int, default=OutputConfig.BATCH_SIZE,
                        help='Records per output batch')
    parser.add_argument('--timezone', default=OutputConfig.TIMEZONE, help='Time zone for timestamps')
    parser.add_argument('--db-host', default=DatabaseConfig.HOST, help='Database host')
    parser.add_argument('--db-port', type=int, default=DatabaseConfig.PORT, help='Database port')
    parser.add_argument('--db-name', default=DatabaseConfig.NAME, help='Database name')
    parser.add_argument('--db-user', default=DatabaseConfig.USER, help='Database user')
    parser.add_argument('--db-password', default=DatabaseConfig.PASSWORD, help='Database password')
    return parser


def convert(args: argparse.Namespace) -> None:
    formatter = EntryFormatter(
        shape=PROCESSORS[args.processor],
        delimiter=args.delimiter,
        tz=get_timezone(args.timezone)
    )

    try:
        handle = open(args.input, 'rb')
    except OSError as e:
        raise IOFailure(str(e)) from e

    with handle:
        loader = XmlImageLoader(handle)

        if args.processor == 'Database':
            db = Database(
                host = args.db_host,
                port = args.db_port,
                database = args.db_name,
                user = args.db_user,
                password = args.db_password
            )
            DatabaseWriter(formatter, db, batch_size=args.batch_size).write(loader)
        elif args.output == '-':
            SnapshotWriter(formatter, batch_size=args.batch_size, close_sink=False).write(loader, sys.stdout)
        else:
            try:
                sink = open(args.output, 'w', encoding='utf-8')
            except OSError as e:
                raise IOFailure(str(e)) from e
            SnapshotWriter(formatter, batch_size=args.batch_size).write(loader, sink)


def run(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        if args.batch_size <= 0:
            parser.error('--batch-size must be a positive integer')
        if args.processor == 'Database' and args.output != '-':
            parser.error('--output cannot be used with the Database processor')
    except SystemExit as e:
        # argparse завершает работу сам: 0 для --help, 2 для ошибок
        return e.code

    try:
        convert(args)
    except TruncatedInput:
        print("Input file ended unexpectedly. Exiting", file=sys.stderr)
        return 1
    except ImageDumpError as e:
        print(f"Encountered exception.  Exiting: {e}", file=sys.stderr)
        logger.error(f"Conversion failed: {str(e)}")
        return 1
    return 0


def main():
    """Основная функция"""
    setup_logging()
    logger.info("Starting image dump")
    code = run()
    logger.info("Image dump finished")
    sys.exit(code)

if __name__ == "__main__":
    main()
