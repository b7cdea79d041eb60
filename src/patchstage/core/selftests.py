"""Patch Stage core: in-process self tests."""

from __future__ import annotations

import tempfile
import zipfile
from pathlib import Path
from typing import Tuple

from .context import strip_target
from .models import PatchStatus
from .parser import UnifiedDiffParser
from .pipeline import PipelineDriver, Stage
from .tree import SourceTree


class PatchStageSelfTests:
    """
    In-process self tests using temporary directories and embedded patch strings.
    """

    @staticmethod
    def run() -> Tuple[bool, str]:
        parser = UnifiedDiffParser()

        report_lines = []
        ok = True

        def fail(msg: str) -> None:
            nonlocal ok
            ok = False
            report_lines.append("FAIL: " + msg)

        def pass_(msg: str) -> None:
            report_lines.append("OK: " + msg)

        # 1) Target stripping
        if strip_target("a/b/c/d/e") != "d/e" or strip_target("..\\base\\mc\\net\\A.java") != "net/A.java":
            fail("Target stripping incorrect.")
        else:
            pass_("Target stripping.")

        # 2) Parsing keeps raw header paths and literal hunk lines
        patch_clean = (
            "--- ../src-base/minecraft/net/Hello.java\n"
            "+++ ../src-work/minecraft/net/Hello.java\n"
            "@@ -1,3 +1,4 @@\n"
            " one\n"
            "+one-and-a-half\n"
            " two\n"
            " three\n"
        )
        ps = parser.parse_text(patch_clean)
        if ps.total_files() != 1 or ps.total_hunks() != 1:
            fail("Classic unified parsing counts incorrect.")
        elif ps.files[0].target != "../src-base/minecraft/net/Hello.java":
            fail("Parsed target path was rewritten.")
        else:
            pass_("Classic unified parsing.")

        patch_broken = (
            "--- ../src-base/minecraft/net/Data.java\n"
            "+++ ../src-work/minecraft/net/Data.java\n"
            "@@ -1,1 +1,1 @@\n"
            "-missing line\n"
            "+replacement\n"
        )

        with tempfile.TemporaryDirectory() as td:
            root = Path(td).resolve()
            patches = root / "patches"
            patches.mkdir()
            (patches / "Hello.java.patch").write_text(patch_clean, encoding="utf-8")
            (patches / "Data.java.patch").write_text(patch_broken, encoding="utf-8")
            inject = root / "inject"
            (inject / "pkg").mkdir(parents=True)
            (inject / "pkg" / "New.java").write_text("class New {}\n", encoding="utf-8")
            (inject / "logo.png").write_bytes(b"\x89PNG")

            tree = SourceTree(text={"net/Hello.java": "one\ntwo\nthree\n", "net/Data.java": "data\n"})
            driver = PipelineDriver(tree)
            result = driver.run([
                Stage("base", patch_source=patches, snapshot_target=root / "base.jar"),
                Stage("extra", injection_sources=[inject]),
                Stage("final", snapshot_target=root / "final.jar"),
            ])

            # 3) Patch outcomes
            statuses = sorted(r.status.value for r in result.stages[0].reports)
            if statuses != [PatchStatus.FAILED.value, PatchStatus.SUCCESS.value]:
                fail(f"Unexpected patch statuses {statuses}.")
            elif "one-and-a-half" not in tree.text["net/Hello.java"]:
                fail("Clean patch output missing inserted line.")
            else:
                pass_("Stage patch classification.")

            # 4) Reject artifact
            reject = patches / "Data.java.patch.rej"
            if not reject.exists():
                fail("Reject file not written.")
            elif reject.read_text(encoding="utf-8") != "++++ REJECTED PATCH 1\n-missing line\n+replacement\n++++ END PATCH\n":
                fail("Reject file content incorrect.")
            else:
                pass_("Reject artifact.")

            # 5) Injection and snapshots
            with zipfile.ZipFile(root / "base.jar") as zf:
                base_names = set(zf.namelist())
            with zipfile.ZipFile(root / "final.jar") as zf:
                final_names = set(zf.namelist())
            if "pkg/New.java" in base_names or "pkg/New.java" not in final_names:
                fail("Snapshot ordering around injection incorrect.")
            elif tree.get_resource("logo.png") != b"\x89PNG" or "pkg/New.java" not in tree.text:
                fail("Injected files misclassified.")
            else:
                pass_("Injection and snapshots.")

            # 6) Failure surfaced on a completed run
            if not result.failed or result.state.value != "Done":
                fail("Pipeline failure not surfaced.")
            else:
                pass_("Pipeline failure surfaced.")

        return ok, "\n".join(report_lines)
