from types import SimpleNamespace

import pytest

from renderfleet.aws.user_data import UserData, resolve
from renderfleet.constants import OperatingSystemType

pytestmark = [pytest.mark.unit]

GROUP = SimpleNamespace(region="us-west-2", name="RenderFleet", lifecycle_hook_name="renderfleet-launch")


class TestResolve:
    def test_string(self):
        assert resolve("echo hi") == "echo hi"

    def test_callable_is_deferred(self):
        calls = []

        def op() -> str:
            calls.append(1)
            return "late"

        assert calls == []
        assert resolve(op) == "late"
        assert calls == [1]

    def test_nested_lists(self):
        assert resolve(["a", ["b", lambda: "c"]]) == "a\nb\nc"


class TestLinux:
    def test_plain_script(self):
        user_data = UserData.for_linux()
        user_data.add_commands("echo one", "echo two")
        assert user_data.render() == "#!/bin/bash\necho one\necho two"

    def test_download_and_execute(self):
        user_data = UserData.for_linux()
        local = user_data.add_s3_download_command("bucket", "assets/abc/run.sh", "/opt/renderfleet/run.sh")
        user_data.add_execute_file_command(local, "'1' '2'")
        script = user_data.render()

        assert local == "/opt/renderfleet/run.sh"
        assert "aws s3 cp 's3://bucket/assets/abc/run.sh' '/opt/renderfleet/run.sh'" in script
        assert "chmod +x /opt/renderfleet/run.sh" in script
        assert script.endswith("/opt/renderfleet/run.sh '1' '2'")

    def test_signal_runs_in_exit_trap(self):
        user_data = UserData.for_linux()
        user_data.add_commands("echo configure")
        user_data.add_signal_on_exit_command(GROUP)  # type: ignore[arg-type]
        script = user_data.render()

        assert script.index("trap exitTrap EXIT") < script.index("echo configure")
        assert "--auto-scaling-group-name RenderFleet" in script
        assert "--lifecycle-hook-name renderfleet-launch" in script
        assert "--region us-west-2" in script
        assert "RESULT=CONTINUE" in script
        assert "RESULT=ABANDON" in script

    def test_lazy_commands_render_at_render_time(self):
        user_data = UserData.for_linux()
        state = {"value": "before"}
        user_data.add_commands(lambda: f"echo {state['value']}")
        state["value"] = "after"
        assert user_data.render().endswith("echo after")


class TestWindows:
    def test_wrapped_in_powershell_tags(self):
        user_data = UserData.for_windows()
        user_data.add_commands("Write-Output hi")
        script = user_data.render()
        assert script.startswith("<powershell>")
        assert script.endswith("</powershell>")
        assert "throw" not in script

    def test_download_and_execute(self):
        user_data = UserData.for_windows()
        local = user_data.add_s3_download_command("bucket", "k/run.ps1", "C:/ProgramData/renderfleet/run.ps1")
        user_data.add_execute_file_command(local, "'1'")
        script = user_data.render()
        assert "Read-S3Object -BucketName 'bucket' -key 'k/run.ps1'" in script
        assert "&'C:/ProgramData/renderfleet/run.ps1' '1'" in script

    def test_signal_uses_trap_and_success_sentinel(self):
        user_data = UserData(OperatingSystemType.WINDOWS)
        user_data.add_commands("Write-Output configure")
        user_data.add_signal_on_exit_command(GROUP)  # type: ignore[arg-type]
        lines = user_data.render().splitlines()

        assert lines[1] == "trap {"
        assert any("Complete-ASLifecycleAction" in line for line in lines)
        assert lines[-2] == 'throw "Success"'
