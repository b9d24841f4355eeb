"""BatchReconciler 单元测试。

测试覆盖：
- 分块与并发上限
- 冲突行计数
- 单块失败后逐行重写（块隔离）
"""

import asyncio
from collections.abc import Sequence

import pytest
from sqlalchemy.exc import OperationalError

from src.modules.sync.application.batch_reconciler import BatchReconciler
from src.modules.sync.infrastructure.dependencies import DB_CONNECTION_ERRORS

pytestmark = pytest.mark.anyio


class _RecordingWriter:
    """记录并发度与写入行的 writer。"""

    def __init__(self, failing: set[int] | None = None, conflicts: set[int] | None = None):
        self.failing = failing or set()
        self.conflicts = conflicts or set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = 0
        self.written: list[int] = []

    async def __call__(self, chunk: Sequence[int]) -> int:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if any(row in self.failing for row in chunk):
                raise ValueError(f"bad row in chunk starting at {chunk[0]}")
            fresh = [row for row in chunk if row not in self.conflicts]
            self.written.extend(fresh)
            return len(fresh)
        finally:
            self.in_flight -= 1


class TestChunking:
    """分块与并发测试。"""

    async def test_concurrency_never_exceeds_pool_size(self):
        """50 个块、pool_size=3 时同时在途的写入不超过 3 个。"""
        writer = _RecordingWriter()
        reconciler = BatchReconciler(chunk_size=10, pool_size=3)

        result = await reconciler.reconcile(list(range(500)), writer)

        assert result.chunk_count == 50
        assert writer.calls == 50
        assert writer.max_in_flight == 3
        assert result.inserted_count == 500
        assert sorted(writer.written) == list(range(500))

    async def test_worker_count_bounded_by_chunks(self):
        """块数少于 pool_size 时只启动与块数相同的 worker。"""
        writer = _RecordingWriter()
        reconciler = BatchReconciler(chunk_size=5, pool_size=8)

        result = await reconciler.reconcile(list(range(10)), writer)

        assert result.chunk_count == 2
        assert writer.max_in_flight <= 2

    async def test_last_chunk_may_be_short(self):
        writer = _RecordingWriter()
        reconciler = BatchReconciler(chunk_size=4, pool_size=2)

        result = await reconciler.reconcile(list(range(10)), writer)

        assert result.chunk_count == 3
        assert result.inserted_count == 10

    async def test_empty_input_writes_nothing(self):
        writer = _RecordingWriter()
        reconciler = BatchReconciler(chunk_size=4, pool_size=2)

        result = await reconciler.reconcile([], writer)

        assert writer.calls == 0
        assert result.chunk_count == 0
        assert result.inserted_count == 0
        assert not result.has_failures

    def test_rejects_non_positive_sizes(self):
        with pytest.raises(ValueError):
            BatchReconciler(chunk_size=-1, pool_size=3)
        with pytest.raises(ValueError):
            BatchReconciler(chunk_size=10, pool_size=-2)

    def test_explicit_zero_is_not_replaced_by_default(self):
        """显式传入 0 必须被拒绝，而不是静默回退到配置默认值。"""
        with pytest.raises(ValueError):
            BatchReconciler(chunk_size=0, pool_size=3)
        with pytest.raises(ValueError):
            BatchReconciler(chunk_size=10, pool_size=0)


class TestConflictsAndFailures:
    """冲突与失败隔离测试。"""

    async def test_existing_rows_counted_as_conflicts(self):
        """已存在的自然键被忽略，不算失败。"""
        writer = _RecordingWriter(conflicts={1, 2, 3})
        reconciler = BatchReconciler(chunk_size=4, pool_size=2)

        result = await reconciler.reconcile(list(range(8)), writer)

        assert result.inserted_count == 5
        assert result.conflict_count == 3
        assert result.failed_count == 0

    async def test_failed_chunk_does_not_abort_others(self):
        """一个块失败后逐行重写，只有坏行计入失败。"""
        writer = _RecordingWriter(failing={7})
        reconciler = BatchReconciler(chunk_size=5, pool_size=3)

        result = await reconciler.reconcile(list(range(20)), writer)

        assert result.failed_count == 1
        assert result.inserted_count == 19
        assert 7 not in writer.written
        assert sorted(writer.written) == [row for row in range(20) if row != 7]
        assert result.first_error is not None
        assert result.has_failures

    async def test_first_error_is_kept(self):
        writer = _RecordingWriter(failing={0, 1})
        reconciler = BatchReconciler(chunk_size=10, pool_size=1)

        result = await reconciler.reconcile(list(range(3)), writer)

        assert result.failed_count == 2
        assert result.first_error == "bad row in chunk starting at 0"


class _DisconnectedWriter:
    """每次写入都因数据库连接断开而失败。"""

    def __init__(self, error: BaseException):
        self.error = error
        self.calls = 0

    async def __call__(self, chunk: Sequence[int]) -> int:
        self.calls += 1
        raise self.error


class TestConnectionLoss:
    """连接类错误不逐行重试整块。"""

    async def test_connection_error_fails_rest_of_chunk(self):
        writer = _DisconnectedWriter(ConnectionError("connection refused"))
        reconciler = BatchReconciler(chunk_size=100, pool_size=1)

        result = await reconciler.reconcile(list(range(100)), writer)

        # 一次整块写入 + 一次单行写入
        assert writer.calls == 2
        assert result.failed_count == 100
        assert result.inserted_count == 0
        assert result.first_error == "connection refused"

    async def test_database_operational_error_fails_rest_of_chunk(self):
        writer = _DisconnectedWriter(
            OperationalError("INSERT INTO channels", {}, Exception("server closed"))
        )
        reconciler = BatchReconciler(
            chunk_size=50, pool_size=2, connection_errors=DB_CONNECTION_ERRORS
        )

        result = await reconciler.reconcile(list(range(100)), writer)

        assert writer.calls == 4
        assert result.failed_count == 100

    async def test_row_errors_still_isolated(self):
        """非连接类错误仍逐行重写，只有坏行失败。"""
        writer = _RecordingWriter(failing={3})
        reconciler = BatchReconciler(
            chunk_size=10, pool_size=1, connection_errors=DB_CONNECTION_ERRORS
        )

        result = await reconciler.reconcile(list(range(10)), writer)

        assert result.failed_count == 1
        assert result.inserted_count == 9
