# imagedump/config.py

import logging
import os

class OutputConfig:
    BATCH_SIZE = int(os.getenv('IMAGEDUMP_BATCH_SIZE', '5000'))
    DELIMITER = os.getenv('IMAGEDUMP_DELIMITER', '\t')
    TIMEZONE = os.getenv('IMAGEDUMP_TIMEZONE', 'UTC')

class ProvenanceConfig:
    AREA = os.getenv('IMAGEDUMP_AREA', 'default')
    CLUSTER_NAME = os.getenv('IMAGEDUMP_CLUSTER_NAME', 'hdfs')
    NAMESPACE = os.getenv('IMAGEDUMP_NAMESPACE', 'default')
    PROTOCOL = os.getenv('IMAGEDUMP_PROTOCOL', 'hdfs')

class DatabaseConfig:
    HOST = os.getenv('DB_HOST', 'localhost')
    PORT = int(os.getenv('DB_PORT', '5432'))
    NAME = os.getenv('DB_NAME', 'database')
    USER = os.getenv('DB_USER', 'user')
    PASSWORD = os.getenv('DB_PASSWORD', 'password')
    TABLE = os.getenv('DB_TABLE', 'inode_record')

class LoggingConfig:
    LEVEL = logging.INFO
    FILE_PATH = os.getenv('LOG_FILE', 'imagedump.log')
