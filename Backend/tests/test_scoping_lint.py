"""
The event scoping lint must pass on the package and catch the obvious
mistakes it exists for.
"""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "check_event_scoping.py"


@pytest.fixture(scope="module")
def lint():
    spec = importlib.util.spec_from_file_location("check_event_scoping", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_package_has_no_findings(lint):
    assert lint.scan_directory(lint.SCAN_ROOT) == []


def test_unscoped_child_query_is_flagged(lint, tmp_path):
    source = tmp_path / "routes_bad.py"
    source.write_text(
        "async def leak(session):\n"
        "    result = await session.execute(select(Guest))\n"
        "    return result.scalars().all()\n"
    )
    findings = lint.scan_file(source)
    assert [f.line_num for f in findings] == [2]


def test_unguarded_route_is_flagged(lint, tmp_path):
    source = tmp_path / "routes_open.py"
    source.write_text(
        "@router.get(\"/events/{event_id}/guests\")\n"
        "async def list_guests(\n"
        "    event_id: str,\n"
        "    session: AsyncSession = Depends(get_session),\n"
        "):\n"
        "    ...\n"
        "\n"
        "@router.get(\"/events/{event_id}/menu\")\n"
        "async def list_menu(ctx: EventContext = Depends(get_event_context)):\n"
        "    ...\n"
    )
    findings = lint.scan_file(source)
    assert [f.line_num for f in findings] == [1]
