"""按提交记录重新计算进行中任务的通过/失败计数。

用法: python scripts/recount_task_counters.py [--dry-run]
"""
import sys
from pathlib import Path

# 添加项目根目录到 path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hifz.db import SessionLocal
from hifz.services.maintenance import recount_task_counters


def main():
    dry_run = "--dry-run" in sys.argv[1:]

    print("=" * 50)
    print("重新计算任务计数" + ("（试运行）" if dry_run else ""))
    print("=" * 50)

    with SessionLocal() as db:
        fixes = recount_task_counters(db, dry_run=dry_run)

    for fix in fixes:
        print(
            f"  任务 {fix.task_id}: 通过 {fix.passed_before} -> {fix.passed_after}, "
            f"失败 {fix.failed_before} -> {fix.failed_after}"
        )
    if not fixes:
        print("  所有计数一致，无需修复")

    print("\n" + "=" * 50)
    print(f"完成！共修复 {len(fixes)} 个任务")
    print("=" * 50)


if __name__ == "__main__":
    main()
