"""Doctor command coordinator."""

from argparse import Namespace

from upkg.core.services import DoctorService

from .base import BaseCommandHandler


class DoctorHandler(BaseCommandHandler):
    """Prints system diagnostics."""

    async def execute(self, args: Namespace) -> int:
        """Check tools, directories and records.

        Returns:
            0 when no issue was found, 1 otherwise

        """
        report = DoctorService(self.context, self.store).diagnose(fix=args.fix)

        print("External tools:")
        for tool in report.tools:
            if tool.found:
                print(f"  ✅ {tool.name}")
            else:
                print(f"  ⚠️  {tool.name}: not found ({tool.purpose})")

        print("\nDirectories:")
        for check in report.directories:
            icon = "✅" if check.status.usable else "❌"
            print(f"  {icon} {check.path} ({check.status.value})")

        print("\nInstalled packages:")
        print(f"  {report.records} recorded")
        for broken in report.broken:
            print(f"  ⚠️  {broken.record.name} ({broken.record.install_id})")
            for missing in broken.missing:
                print(f"      missing: {missing}")
        for entry in report.unreadable:
            print(f"  ❌ unreadable record: {entry}")

        print("\nEnvironment:")
        for name, value in report.environment.items():
            print(f"  {name}: {value or 'not set'}")

        issues, warnings = report.issues, report.warnings
        print()
        if issues:
            print(f"❌ {len(issues)} issue(s), {len(warnings)} warning(s)")
            return 1
        if warnings:
            print(f"⚠️  No issues, {len(warnings)} warning(s)")
        else:
            print("✅ All checks passed")
        return 0
