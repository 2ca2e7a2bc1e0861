import pytest

from otcmachine.driver import Driver
from otcmachine.exceptions import ConfigurationError
from otcmachine.flags import CREATE_FLAGS, FLAGS_BY_NAME, DriverOptions, parse_bool


class TestFlagTable:
    def test_names_are_unique_and_prefixed(self):
        names = [f.name for f in CREATE_FLAGS]
        assert len(names) == len(set(names))
        assert all(n.startswith("otc-") for n in names)

    def test_defaults(self):
        assert FLAGS_BY_NAME["otc-region"].default == "eu-de"
        assert FLAGS_BY_NAME["otc-availability-zone"].default == "eu-de-01"
        assert FLAGS_BY_NAME["otc-flavor-name"].default == "s2.large.4"
        assert FLAGS_BY_NAME["otc-bandwidth-size"].default == 100
        assert FLAGS_BY_NAME["otc-elastic-ip"].default == 1
        assert FLAGS_BY_NAME["otc-ssh-port"].default == 22
        assert FLAGS_BY_NAME["otc-root-volume-size"].default == 200
        assert FLAGS_BY_NAME["otc-wait-timeout"].default == 600

    def test_env_vars(self):
        assert FLAGS_BY_NAME["otc-cloud"].env_var == "OS_CLOUD"
        assert FLAGS_BY_NAME["otc-tenant-id"].env_var == "TENANT_ID"
        assert FLAGS_BY_NAME["otc-user-data-raw"].env_var == ""


class TestDriverOptions:
    def test_falls_back_to_default(self):
        opts = DriverOptions()
        assert opts.string("otc-region") == "eu-de"
        assert opts.int("otc-ssh-port") == 22
        assert opts.bool("otc-skip-ip") is False

    def test_explicit_values_are_coerced(self):
        opts = DriverOptions({"otc-ssh-port": "2222", "otc-k8s-group": "true"})
        assert opts.int("otc-ssh-port") == 2222
        assert opts.bool("otc-k8s-group") is True

    def test_none_values_are_ignored(self):
        assert DriverOptions({"otc-region": None}).string("otc-region") == "eu-de"

    def test_unknown_name_raises_key_error(self):
        with pytest.raises(KeyError):
            DriverOptions().string("otc-nope")
        with pytest.raises(KeyError):
            DriverOptions({"otc-nope": "x"})

    def test_invalid_integer(self):
        with pytest.raises(ConfigurationError, match="otc-ssh-port"):
            DriverOptions({"otc-ssh-port": "twenty-two"})

    def test_from_env_binds_environment(self):
        opts = DriverOptions.from_env({"OS_USERNAME": "bob", "BANDWIDTH_SIZE": "50", "UNRELATED": "x"})
        assert opts.string("otc-username") == "bob"
        assert opts.int("otc-bandwidth-size") == 50

    def test_explicit_value_wins_over_environment(self):
        opts = DriverOptions.from_env({"REGION": "eu-nl"}, {"otc-region": "eu-ch2", "otc-username": None})
        assert opts.string("otc-region") == "eu-ch2"
        assert "otc-username" not in opts

    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("yes", True), ("", False), ("0", False)])
    def test_parse_bool(self, raw: str, expected: bool):
        assert parse_bool(raw) is expected

    def test_parse_bool_rejects_garbage(self):
        with pytest.raises(ConfigurationError):
            parse_bool("maybe")


class TestSetConfigFromFlags:
    def test_defaults_applied(self, make_driver):
        s = make_driver().state
        assert s.region == "eu-de"
        assert s.availability_zone == "eu-de-01"
        assert s.default_security_group == "docker-machine-grp"
        assert s.k8s_security_group == ""
        assert s.network_name == "vpc-docker-machine"
        assert not s.network.present
        assert s.floating_ip_opts.ip_type == "5_bgp"
        assert not s.skip_floating_ip
        assert s.root_volume.size == 200
        assert s.root_volume.volume_type == "SSD"

    def test_legacy_availability_zone_wins(self, make_driver):
        s = make_driver({"otc-available-zone": "eu-de-02", "otc-availability-zone": "eu-de-03"}).state
        assert s.availability_zone == "eu-de-02"

    def test_current_availability_zone_used_when_legacy_empty(self, make_driver):
        s = make_driver({"otc-availability-zone": "eu-de-03"}).state
        assert s.availability_zone == "eu-de-03"

    def test_legacy_tenant_id_wins(self, make_driver):
        s = make_driver({"otc-tenant-id": "legacy", "otc-project-id": "current"}).state
        assert s.project_id == "legacy"

    def test_legacy_elastic_ip_type_wins(self, make_driver):
        s = make_driver({"otc-elastic-ip-type": "5_sbgp", "otc-floating-ip-type": "5_bgp"}).state
        assert s.floating_ip_opts.ip_type == "5_sbgp"

    @pytest.mark.parametrize("options", [{"otc-elastic-ip": 0}, {"otc-skip-ip": True}])
    def test_skip_floating_ip(self, make_driver, options):
        assert make_driver(options).state.skip_floating_ip

    def test_lists_are_split(self, make_driver):
        s = make_driver({"otc-sec-groups": "web, db", "otc-tags": "a,b,,c"}).state
        assert s.security_groups == ["web", "db"]
        assert s.tags == ["a", "b", "c"]

    def test_group_toggles(self, make_driver):
        s = make_driver({"otc-skip-default-sg": True, "otc-k8s-group": True}).state
        assert s.default_security_group == ""
        assert s.k8s_security_group == "sg-k8s"

    def test_supplied_ids_are_external(self, make_driver, tmp_path):
        key = tmp_path / "key"
        key.write_text("private")
        s = make_driver({
            "otc-vpc-id": "net-1",
            "otc-subnet-id": "sub-1",
            "otc-keypair-name": "mine",
            "otc-private-key-file": str(key),
        }).state
        for managed in (s.network, s.subnet, s.key_pair):
            assert managed.present
            assert not managed.driver_managed

    def test_user_data_file_and_raw_conflict(self, make_driver, fake_client):
        with pytest.raises(ConfigurationError, match="user-data"):
            make_driver({"otc-user-data-file": "/tmp/ud.sh", "otc-user-data-raw": "#!/bin/sh"})
        assert fake_client.calls == []

    def test_keypair_without_private_key(self, make_driver):
        with pytest.raises(ConfigurationError, match="keypair"):
            make_driver({"otc-keypair-name": "mine"})

    def test_private_key_without_keypair(self, make_driver):
        with pytest.raises(ConfigurationError, match="keypair"):
            make_driver({"otc-private-key-file": "/tmp/id_rsa"})

    def test_only_ipv4_is_supported(self, make_driver):
        assert make_driver().state.ip_version == 4
        with pytest.raises(ConfigurationError, match="IP version 6"):
            make_driver({"otc-ip-version": 6})

    def test_bandwidth_options(self, make_driver):
        opts = make_driver(
            {"otc-bandwidth-size": 25, "otc-bandwidth-type": "WHOLE"}, name="web-1"
        ).state.floating_ip_opts
        assert opts.bandwidth_size == 25
        assert opts.bandwidth_type == "WHOLE"
        assert opts.bandwidth_name == "bandwidth-web-1"

    def test_no_auth_method(self, tmp_path):
        driver = Driver("m", tmp_path)
        with pytest.raises(ConfigurationError, match="authorization"):
            driver.set_config_from_flags(DriverOptions({"otc-username": "only-user"}))

    @pytest.mark.parametrize(
        "options",
        [
            {"otc-cloud": "otc"},
            {"otc-token": "tok"},
            {"otc-access-key-id": "ak", "otc-access-key-key": "sk"},
        ],
    )
    def test_alternative_auth_methods(self, tmp_path, options):
        Driver("m", tmp_path).set_config_from_flags(DriverOptions(options))
