import json
from types import SimpleNamespace

import pytest

from renderfleet.aws.cloudwatch_agent import CloudWatchAgent, CloudWatchConfigBuilder
from renderfleet.aws.iam import Role
from renderfleet.aws.logs import LogGroupFactory, LogGroupProps
from renderfleet.aws.user_data import UserData
from renderfleet.constants import OperatingSystemType
from renderfleet.observability import WORKER_LOG_FILES, defaulted_log_group_props, worker_cloudwatch_config
from tests.fakes import FakeIAM

pytestmark = [pytest.mark.unit]


def make_host(os_type: OperatingSystemType = OperatingSystemType.LINUX):
    iam = FakeIAM()
    role = Role(iam=iam, name="fleet-role", arn="arn:aws:iam::123456789012:role/fleet-role")  # type: ignore[arg-type]
    return SimpleNamespace(os_type=os_type, user_data=UserData(os_type), role=role), iam


class TestLogGroupProps:
    def test_rejects_unsupported_retention(self):
        with pytest.raises(ValueError, match="retention_days"):
            LogGroupProps(retention_days=4)

    def test_default_prefix_applied(self):
        assert defaulted_log_group_props(None).log_group_prefix == "deadline"
        assert defaulted_log_group_props(LogGroupProps(retention_days=7)).retention_days == 7

    def test_custom_prefix_kept(self):
        props = LogGroupProps(log_group_prefix="/renderfarm/")
        assert defaulted_log_group_props(props) is props


class TestLogGroupFactory:
    def test_creates_with_prefix_and_retention(self, clients):
        group = LogGroupFactory(clients).create_or_fetch("RenderFleet", LogGroupProps(log_group_prefix="/farm/"))

        assert group.log_group_name == "/farm/RenderFleet"
        assert clients.logs.called("put_retention_policy") == [
            {"logGroupName": "/farm/RenderFleet", "retentionInDays": 3}
        ]
        assert group.arn == "arn:aws:logs:us-west-2:123456789012:log-group:/farm/RenderFleet"

    def test_fetches_existing_group(self, clients):
        clients.logs.log_groups.add("deadlineRenderFleet")
        group = LogGroupFactory(clients).create_or_fetch("RenderFleet", LogGroupProps(log_group_prefix="deadline"))
        assert group.log_group_name == "deadlineRenderFleet"
        assert len(clients.logs.called("put_retention_policy")) == 1

    def test_unlimited_retention_removes_policy(self, clients):
        LogGroupFactory(clients).create_or_fetch("f", LogGroupProps(retention_days=None))
        assert clients.logs.called("delete_retention_policy") == [{"logGroupName": "f"}]

    def test_grant_write(self, clients):
        host, _ = make_host()
        group = LogGroupFactory(clients).create_or_fetch("f")
        group.grant_write(host)
        assert host.role.has_action("logs:PutLogEvents", f"{group.arn}:*")


class TestCloudWatchConfig:
    def test_worker_files_for_both_platforms(self):
        config = json.loads(worker_cloudwatch_config("deadlineFleet").generate_cloudwatch_configuration())
        logs = config["logs"]
        entries = logs["logs_collected"]["files"]["collect_list"]

        assert logs["force_flush_interval"] == 15
        assert len(entries) == len(WORKER_LOG_FILES) == 6
        assert {e["log_group_name"] for e in entries} == {"deadlineFleet"}
        assert entries[3] == {
            "log_group_name": "deadlineFleet",
            "log_stream_name": "cloud-init-output-{instance_id}",
            "file_path": "/var/log/cloud-init-output.log",
            "timezone": "Local",
        }

    def test_rendering_is_deterministic(self):
        builder = CloudWatchConfigBuilder(force_flush_interval=15)
        builder.add_logs_collect_list("g", "s", "/var/log/x.log")
        assert builder.generate_cloudwatch_configuration() == builder.generate_cloudwatch_configuration()


class TestCloudWatchAgent:
    def test_install_stores_config_and_configures_host(self, clients):
        host, iam = make_host()
        agent = CloudWatchAgent(clients, "renderfleet/fleet/agent", '{"logs": {}}')
        assert clients.ssm.calls == []

        agent.install(host)

        assert agent.parameter_name == "/renderfleet/fleet/agent"
        assert clients.ssm.parameters["/renderfleet/fleet/agent"] == '{"logs": {}}'
        assert host.role.has_action("ssm:GetParameter", agent.parameter_arn)
        assert "-c ssm:/renderfleet/fleet/agent -s" in host.user_data.render()
        assert iam.called("put_role_policy")[0]["RoleName"] == "fleet-role"

    def test_windows_host(self, clients):
        host, _ = make_host(OperatingSystemType.WINDOWS)
        CloudWatchAgent(clients, "/p", "{}").install(host)
        assert "amazon-cloudwatch-agent-ctl.ps1" in host.user_data.render()
