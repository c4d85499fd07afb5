from datetime import datetime, timezone

import pytest

from imagedump.formatter import DELIMITED, EntryFormatter
from imagedump.models import Provenance

FIXED_NOW = datetime(2020, 12, 10, 8, 30, 15, 123456, tzinfo=timezone.utc)

SAMPLE_IMAGE = b"""<?xml version="1.0"?>
<fsimage>
<version><layoutVersion>-64</layoutVersion></version>
<INodeSection><lastInodeId>16390</lastInodeId><numInodes>6</numInodes>
<inode><id>16385</id><type>DIRECTORY</type><name></name><mtime>1607589015123</mtime><permission>hdfs:supergroup:0755</permission><nsquota>9223372036854775807</nsquota><dsquota>-1</dsquota></inode>
<inode><id>16386</id><type>DIRECTORY</type><name>user</name><mtime>0</mtime><permission>hdfs:supergroup:rwxr-xr-x</permission><acls><acl>user:alice:rwx</acl></acls><nsquota>-1</nsquota><dsquota>-1</dsquota></inode>
<inode><id>16387</id><type>FILE</type><name>a.txt</name><replication>3</replication><mtime>1607589015123</mtime><atime>1607589016000</atime><preferredBlockSize>134217728</preferredBlockSize><permission>alice:users:0644</permission><blocks><block><id>1073741825</id><genstamp>1001</genstamp><numBytes>1000</numBytes></block><block><id>1073741826</id><genstamp>1002</genstamp><numBytes>24</numBytes></block></blocks><storagePolicyId>0</storagePolicyId></inode>
<inode><id>16388</id><type>SYMLINK</type><name>link</name><permission>alice:users:0777</permission><mtime>3</mtime><atime>4</atime><target>/user/a.txt</target></inode>
<inode><id>16389</id><type>FILE</type><name>top.txt</name><replication>1</replication><mtime>0</mtime><atime>0</atime><preferredBlockSize>134217728</preferredBlockSize><permission>hdfs:supergroup:0600</permission></inode>
<inode><id>16390</id><type>WEIRD</type><name>odd</name><permission>hdfs:supergroup:0600</permission></inode>
</INodeSection>
<INodeDirectorySection>
<directory><parent>16385</parent><child>16386</child><child>16389</child><child>16390</child></directory>
<directory><parent>16386</parent><child>16387</child><child>16388</child></directory>
</INodeDirectorySection>
</fsimage>
"""


@pytest.fixture
def image_xml():
    return SAMPLE_IMAGE


@pytest.fixture
def provenance():
    return Provenance(area='test', cluster_name='cluster', namespace='ns', protocol='hdfs')


@pytest.fixture
def make_formatter(provenance):
    def factory(shape=DELIMITED, delimiter='\t', tz=timezone.utc):
        return EntryFormatter(
            shape=shape,
            delimiter=delimiter,
            provenance=provenance,
            tz=tz,
            clock=lambda zone: FIXED_NOW.astimezone(zone)
        )
    return factory
