"""End-to-end audits against real Redis/Valkey containers."""

from __future__ import annotations

from io import StringIO
from typing import TYPE_CHECKING

import pytest
import redis
from django.core.management import call_command
from django.utils.module_loading import import_string

from cachex_audit.batch import BatchProcessor
from cachex_audit.conf import parse_connection_target
from cachex_audit.output import OutputSink
from cachex_audit.scanner import ScanOrchestrator

if TYPE_CHECKING:
    from pathlib import Path

    from tests.fixtures.containers import RedisContainerInfo

pytestmark = pytest.mark.integration


@pytest.fixture
def seeded(redis_container: RedisContainerInfo):
    client = redis.Redis(host=redis_container.host, port=redis_container.port, db=0)
    client.flushdb()
    client.set("plain", "value")
    client.set("expiring", "value", ex=300)
    client.rpush("queue", "a", "b", "c")
    client.hset("profile", mapping={"name": "x"})
    client.sadd("tags", "t1")
    client.zadd("scores", {"m": 1.5})
    client.xadd("events", {"kind": "login"}, id="1-0")
    client.set("multi\nline", "v")
    yield client
    client.flushdb()
    client.close()


def report_lines(output: str) -> dict[str, str]:
    return {line.split(" | ")[0]: line for line in output.splitlines() if " | " in line}


class TestAuditAgainstServer:
    def test_reports_keys_without_expiry(self, redis_images, redis_container, seeded):
        out = StringIO()
        call_command("audit_expiry", redis_container.url, stdout=out)

        lines = report_lines(out.getvalue())
        assert set(lines) == {"plain", "queue", "profile", "tags", "scores", "events", "multi\\nline"}
        assert all(" | TTL: -1 | IdleHours: " in line for line in lines.values())
        assert "Total keys reported: 8" in out.getvalue()
        assert out.getvalue().splitlines()[-1] == "Total keys without expiration: 7"

    def test_value_previews(self, redis_container, seeded):
        out = StringIO()
        call_command("audit_expiry", redis_container.url, "--values", stdout=out)

        lines = report_lines(out.getvalue())
        assert lines["plain"].endswith("| Value: value")
        assert lines["queue"].endswith("| Value: List[3] [a, b, c]")
        assert lines["profile"].endswith("| Value: Hash[1] {name=x}")
        assert lines["tags"].endswith("| Value: Set[1] [t1]")
        assert lines["scores"].endswith("| Value: SortedSet[1] [m@1.5]")
        assert lines["events"].endswith("| Value: Stream[1] [1-0 {kind=login}]")

    def test_small_pages_and_pattern(self, redis_container, seeded):
        out = StringIO()
        call_command("audit_expiry", redis_container.url, "--page-size", "1", "--pattern", "p*", stdout=out)

        lines = report_lines(out.getvalue())
        assert set(lines) == {"plain", "profile"}
        assert out.getvalue().splitlines()[-1] == "Total keys without expiration: 2"

    def test_rotated_output(self, redis_container, seeded, tmp_path: Path):
        for i in range(200):
            seeded.set(f"bulk:{i:04d}", "v")
        target = parse_connection_target(redis_container.url)
        client = import_string(target.client_class)(list(target.servers))
        path = tmp_path / "report.txt"
        try:
            with OutputSink(path, console=StringIO(), max_bytes=1024) as sink:
                found = ScanOrchestrator(BatchProcessor(), sink).run(client.get_nodes(), page_size=50)
        finally:
            client.close()

        assert found == 207
        assert len(sink.paths) > 1
        assert sink.paths[1] == tmp_path / "report.part2.txt"
        written = [line for p in sink.paths for line in p.read_text(encoding="utf-8").splitlines()]
        assert sum(1 for line in written if " | TTL: -1 | " in line) == 207
