"""Batch Reconciler - 分块、限并发、冲突可忽略的批量写入。

写入流程：
1. 把输入按 chunk_size 切块
2. 启动 min(pool_size, 块数) 个 worker，每个 worker 反复领取下一个未处理的块号
3. 每个块调用一次 write（插入并忽略自然键冲突）
4. 块写入抛出异常时逐行重写该块，只有真正写不进去的行计入 failed_count
5. 逐行重写遇到连接类错误（数据库不可用）时，该块剩余行直接计为失败
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from src.core.config import settings
from src.core.infrastructure.logging import BusinessEvents
from src.modules.sync.domain.entities import BatchWriteResult

type ChunkWriter[T] = Callable[[Sequence[T]], Awaitable[int]]


class BatchReconciler:
    """批量写入器。

    write 必须是"插入并忽略已存在自然键"的操作并返回实际新建行数，
    且允许被多个 worker 并发调用。
    """

    def __init__(
        self,
        chunk_size: int | None = None,
        pool_size: int | None = None,
        connection_errors: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError),
    ):
        self.chunk_size = settings.SYNC_CHUNK_SIZE if chunk_size is None else chunk_size
        self.pool_size = (
            settings.SYNC_WORKER_POOL_SIZE if pool_size is None else pool_size
        )
        if self.chunk_size < 1 or self.pool_size < 1:
            raise ValueError("chunk_size and pool_size must be positive")
        self.connection_errors = connection_errors

    async def reconcile[T](
        self,
        rows: Sequence[T],
        write: ChunkWriter[T],
        label: str = "rows",
    ) -> BatchWriteResult:
        """写入全部行并汇总结果。单个块失败不会中断其它块。"""
        chunks = [
            rows[start : start + self.chunk_size]
            for start in range(0, len(rows), self.chunk_size)
        ]
        result = BatchWriteResult(chunk_count=len(chunks))
        if not chunks:
            return result

        next_index = 0

        def claim() -> int | None:
            # 单事件循环内两次 await 之间执行，领取操作是原子的
            nonlocal next_index
            if next_index >= len(chunks):
                return None
            index = next_index
            next_index += 1
            return index

        async def worker() -> None:
            while (index := claim()) is not None:
                await self._write_chunk(chunks[index], index, write, result, label)

        worker_count = min(self.pool_size, len(chunks))
        await asyncio.gather(*(worker() for _ in range(worker_count)))

        logger.debug(
            f"Reconciled {len(rows)} {label} in {len(chunks)} chunks "
            f"with {worker_count} workers: inserted={result.inserted_count} "
            f"conflicts={result.conflict_count} failed={result.failed_count}"
        )
        return result

    async def _write_chunk[T](
        self,
        chunk: Sequence[T],
        index: int,
        write: ChunkWriter[T],
        result: BatchWriteResult,
        label: str,
    ) -> None:
        try:
            inserted = await write(chunk)
        except Exception as e:
            logger.warning(
                f"Chunk {index} of {label} ({len(chunk)} rows) failed, "
                f"retrying row by row: {e}"
            )
            await self._write_rows(chunk, write, result, label)
            return

        result.inserted_count += inserted
        result.conflict_count += len(chunk) - inserted

    async def _write_rows[T](
        self,
        chunk: Sequence[T],
        write: ChunkWriter[T],
        result: BatchWriteResult,
        label: str,
    ) -> None:
        failed_before = result.failed_count
        for position, row in enumerate(chunk):
            try:
                inserted = await write([row])
            except self.connection_errors as e:
                remaining = len(chunk) - position
                logger.warning(
                    f"Row-by-row write of {label} lost its connection, "
                    f"marking {remaining} remaining rows as failed: {e}"
                )
                result.record_failure(remaining, e)
                break
            except Exception as e:
                result.record_failure(1, e)
                continue
            result.inserted_count += inserted
            result.conflict_count += 1 - inserted

        failed_rows = result.failed_count - failed_before
        if failed_rows:
            BusinessEvents.batch_write_failed(
                table=label,
                failed_rows=failed_rows,
                error=result.first_error or "unknown",
            )
