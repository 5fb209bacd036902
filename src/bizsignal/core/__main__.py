"""CLI 入口模块 -- python -m bizsignal.core <command>

支持的命令：
  list-failed                        列出 failed 状态的事件
  retrigger <event_id>               按失败事件的数据重新触发
  process-pending [--dry-run] [N]    补处理停留在 pending/processing 的事件
"""

import asyncio
import sys

from .config import get_db_path, load_engine_config

_USAGE = """用法: python -m bizsignal.core <command>
命令:
  list-failed                        列出 failed 状态的事件
  retrigger <event_id>               按失败事件的数据重新触发
  process-pending [--dry-run] [N]    补处理停留在 pending/processing 的事件（最多 N 条）"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "list-failed":
        asyncio.run(list_failed())
    elif command == "retrigger":
        if len(sys.argv) < 3:
            print("用法: python -m bizsignal.core retrigger <event_id>")
            sys.exit(1)
        sys.exit(asyncio.run(retrigger(sys.argv[2])))
    elif command == "process-pending":
        args = sys.argv[2:]
        dry_run = "--dry-run" in args
        rest = [a for a in args if a != "--dry-run"]
        limit = None
        if rest:
            try:
                limit = int(rest[0])
            except ValueError:
                print("用法: python -m bizsignal.core process-pending [--dry-run] [N]")
                sys.exit(1)
        sys.exit(asyncio.run(process_pending(limit=limit, dry_run=dry_run)))
    else:
        print(f"未知命令: {command}")
        print("可用命令: list-failed, retrigger, process-pending")
        sys.exit(1)


async def list_failed() -> None:
    """打印 failed 事件（最新在前）"""
    from .models.enums import EventStatus
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        events = await store_group.event_store.list_events(status=EventStatus.FAILED, limit=1000)
        for event in events:
            print(
                f"{event.event_id}  {event.created_at.isoformat()}  "
                f"{event.source_module}/{event.event_type}  {event.entity_id}  {event.error or ''}"
            )
        print(f"共 {len(events)} 条 failed 事件")
    finally:
        await store_group.conn.close()


async def retrigger(event_id: str) -> int:
    """重新触发失败事件，返回进程退出码"""
    from .engine import create_engine
    from .exceptions import BizSignalError
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        engine = create_engine(store_group, load_engine_config())
        try:
            result = await engine.listener.retrigger_event(event_id)
        except BizSignalError as e:
            print(f"重新触发失败: {e}")
            return 1
        print(f"新事件: {result.event_id}  状态: {result.status}  任务数: {len(result.tasks)}")
        if result.error:
            print(f"错误: {result.error}")
        return 0
    finally:
        await store_group.conn.close()


async def process_pending(limit: int | None = None, dry_run: bool = False) -> int:
    """补处理未完成的事件；有事件出错时退出码为 1"""
    from .engine import create_engine
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        engine = create_engine(store_group, load_engine_config())
        result = await engine.listener.process_pending_events(limit=limit, dry_run=dry_run)
        for candidate in result.candidates:
            templates = ",".join(candidate.matching_templates) or "-"
            print(
                f"{candidate.event_id}  {candidate.status}  "
                f"{candidate.event_type}  {candidate.entity_name}  {templates}"
            )
        mode = "dry-run" if dry_run else "已处理"
        print(
            f"{mode}: 共 {result.total} 条，processed {result.processed}，"
            f"failed {result.failed}，errors {result.errors}，新任务 {result.tasks_created}"
        )
        return 1 if result.errors else 0
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
