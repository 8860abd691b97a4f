"""Tests for cloudproxy_ha.render.renderer."""

from __future__ import annotations

import re
from pathlib import Path

import pytest
import yaml

from cloudproxy_ha.config.models import HAConfig
from cloudproxy_ha.render.renderer import (
    ARTIFACT_ORDER,
    SYSTEM_TARGETS,
    WORKDIR_TARGETS,
    compose_document,
    render_all,
    render_compose,
    render_device_list_block,
    render_env_file,
    render_galera,
    render_init_sql,
    render_keepalived,
    render_readme,
    render_syncthing,
    render_template,
    sql_identifier,
    sql_literal,
    template_tokens,
    write_artifacts,
)


@pytest.fixture
def cfg(full_values) -> HAConfig:
    return HAConfig.from_values(full_values)


def _with(full_values, **overrides) -> HAConfig:
    return HAConfig.from_values({**full_values, **overrides})


# ── render_template ──────────────────────────────────────────────────


class TestRenderTemplate:
    def test_basic_substitution(self):
        assert render_template("a ${X} b", {"X": "1"}) == "a 1 b"

    def test_every_occurrence(self):
        assert render_template("${X}-${X}", {"X": "z"}) == "z-z"

    def test_unknown_left_when_not_strict(self):
        assert render_template("${X} ${Y}", {"X": "1"}) == "1 ${Y}"

    def test_strict_missing_raises(self):
        with pytest.raises(ValueError, match="Y"):
            render_template("${X} ${Y}", {"X": "1"}, strict=True)

    def test_values_not_rescanned(self):
        out = render_template("${A} ${B}", {"A": "${B}", "B": "b"})
        assert out == "${B} b"

    def test_empty_value(self):
        assert render_template("[${X}]", {"X": ""}, strict=True) == "[]"

    def test_template_tokens(self):
        assert template_tokens("${B} ${A} ${B}") == ["A", "B"]


# ── SQL ──────────────────────────────────────────────────────────────


class TestInitSql:
    def test_exact(self, cfg):
        assert render_init_sql(cfg) == (
            "CREATE DATABASE IF NOT EXISTS `npm`;\n"
            "CREATE USER IF NOT EXISTS 'svc'@'%' IDENTIFIED BY 'pw';\n"
            "GRANT ALL PRIVILEGES ON `npm`.* TO 'svc'@'%';\n"
            "FLUSH PRIVILEGES;\n"
        )

    def test_creates_are_guarded(self, cfg):
        for line in render_init_sql(cfg).splitlines():
            if line.startswith("CREATE"):
                assert "IF NOT EXISTS" in line

    def test_only_repeatable_statements_unguarded(self, cfg):
        statements = [s.strip() for s in render_init_sql(cfg).split(";") if s.strip()]
        unguarded = [s.split()[0] for s in statements if "IF NOT EXISTS" not in s]
        assert unguarded == ["GRANT", "FLUSH"]

    def test_quote_escaping(self, full_values):
        sql = render_init_sql(_with(full_values, DB_USER_PASS="it's", DB_NAME="a`b"))
        assert "IDENTIFIED BY 'it''s'" in sql
        assert "`a``b`" in sql

    def test_helpers(self):
        assert sql_identifier("x") == "`x`"
        assert sql_literal("a\\b") == "'a\\\\b'"


# ── Compose ──────────────────────────────────────────────────────────


class TestCompose:
    def test_parses_as_yaml(self, cfg):
        doc = yaml.safe_load(render_compose(cfg))
        assert set(doc["services"]) == {"mariadb", "nginx-proxy-manager"}

    def test_shared_values_agree(self, cfg):
        doc = yaml.safe_load(render_compose(cfg))
        db = doc["services"]["mariadb"]
        npm = doc["services"]["nginx-proxy-manager"]
        assert db["environment"]["MYSQL_ROOT_PASSWORD"] == "rootpw"
        assert db["environment"]["CLUSTER_NAME"] == "npm-galera"
        assert db["environment"]["XTRABACKUP_PASSWORD"] == "xbpw"
        assert npm["environment"]["DB_MYSQL_NAME"] == "npm"
        assert npm["environment"]["DB_MYSQL_USER"] == "svc"
        assert npm["environment"]["DB_MYSQL_PASSWORD"] == "pw"
        assert npm["environment"]["PUID"] == "1000"

    def test_ports_and_volumes(self, cfg):
        doc = yaml.safe_load(render_compose(cfg))
        db = doc["services"]["mariadb"]
        npm = doc["services"]["nginx-proxy-manager"]
        assert db["ports"] == ["127.0.0.1:3306:3306"]
        assert "./db-init:/docker-entrypoint-initdb.d" in db["volumes"]
        assert npm["ports"] == ["80:80", "443:443", "81:81"]
        assert npm["volumes"] == ["/opt/npm-data:/data", "/etc/letsencrypt:/etc/letsencrypt"]

    def test_depends_on_and_network(self, cfg):
        doc = compose_document(cfg)
        assert doc["services"]["nginx-proxy-manager"]["depends_on"] == ["mariadb"]
        assert doc["networks"] == {"galera-net": {"driver": "bridge"}}
        assert "galera-data" in doc["volumes"]

    def test_service_order_preserved(self, cfg):
        text = render_compose(cfg)
        assert text.index("mariadb:") < text.index("nginx-proxy-manager:")


# ── env file ─────────────────────────────────────────────────────────


class TestEnvFile:
    def test_lines(self, cfg):
        lines = render_env_file(cfg).splitlines()
        assert lines[0] == "HOST_IP=10.0.0.2"
        assert "ROLE=MASTER" in lines
        assert lines[-1] == "PGID=1000"
        assert len(lines) == 17


# ── Galera ───────────────────────────────────────────────────────────


class TestGalera:
    def test_cluster_address(self, full_values):
        cfg = _with(full_values, HOST_IP="10.0.0.2", PEER_IPS="10.0.0.3,10.0.0.4")
        text = render_galera(cfg)
        assert 'wsrep_cluster_address="gcomm://10.0.0.2,10.0.0.3,10.0.0.4"' in text

    def test_exact(self, cfg):
        assert render_galera(cfg) == (
            "[mysqld]\n"
            "wsrep_on=ON\n"
            "wsrep_provider=/usr/lib/galera/libgalera_smm.so\n"
            'wsrep_cluster_address="gcomm://10.0.0.2,10.0.0.3,10.0.0.4"\n'
            'wsrep_cluster_name="npm-galera"\n'
            'wsrep_node_address="10.0.0.2"\n'
            'wsrep_node_name="proxy-1"\n'
            "wsrep_sst_method=xtrabackup-v2\n"
        )


# ── Keepalived ───────────────────────────────────────────────────────


class TestKeepalived:
    def test_master_scenario(self, full_values):
        cfg = _with(full_values, ROLE="MASTER", PRIORITY="150", FLOATING_IP="10.0.0.100")
        text = render_keepalived(cfg)
        assert "state MASTER" in text
        assert "priority 150" in text
        assert "BACKUP" not in text
        block = re.search(r"virtual_ipaddress \{\n(.*?)\n  \}", text, re.S)
        assert block is not None
        assert block.group(1).strip() == "10.0.0.100"

    def test_backup(self, full_values):
        text = render_keepalived(_with(full_values, ROLE="BACKUP", PRIORITY="100"))
        assert "state BACKUP" in text
        assert "MASTER" not in text

    def test_interface_parameterised(self, full_values):
        text = render_keepalived(_with(full_values, VRRP_INTERFACE="ens10"))
        assert "interface ens10" in text

    def test_no_tokens_left(self, cfg):
        assert "${" not in render_keepalived(cfg)


# ── Syncthing / device list ──────────────────────────────────────────


class TestDeviceListBlock:
    def test_order_and_count(self):
        block = render_device_list_block("f", "f", "/p", ["A", "B", "C"])
        ids = re.findall(r'<device id="([^"]*)" />', block)
        assert ids == ["A", "B", "C"]

    def test_no_devices(self):
        block = render_device_list_block("f", "f", "/p", [])
        assert "<device" not in block
        assert block.startswith('  <folder id="f" label="f" path="/p" type="sendreceive">\n')
        assert block.endswith("  </folder>\n")

    def test_duplicates_and_empties_kept(self):
        block = render_device_list_block("f", "f", "/p", ["A", "", "A"])
        assert re.findall(r'<device id="([^"]*)" />', block) == ["A", "", "A"]

    def test_options(self):
        block = render_device_list_block("f", "f", "/p", ["A"], rescan_interval=60)
        assert "<ignoreDelete>false</ignoreDelete>" in block
        assert "<fsWatcherEnabled>true</fsWatcherEnabled>" in block
        assert "<rescanIntervalS>60</rescanIntervalS>" in block

    def test_xml_escaping(self):
        block = render_device_list_block("f", "f", "/p&q", ['X"<'])
        assert 'path="/p&amp;q"' in block
        assert 'id="X&quot;&lt;"' in block


class TestSyncthing:
    def _device_ids_per_folder(self, text: str):
        folders = re.findall(r"<folder (.*?)</folder>", text, re.S)
        return [re.findall(r'<device id="([^"]*)" />', f) for f in folders]

    def test_both_folders_same_roster(self, cfg):
        per_folder = self._device_ids_per_folder(render_syncthing(cfg))
        assert per_folder == [["A", "B", "C"], ["A", "B", "C"]]

    def test_empty_peer_ids(self, full_values):
        cfg = _with(full_values, SYNCTHING_PEER_DEVICE_IDS="")
        per_folder = self._device_ids_per_folder(render_syncthing(cfg))
        assert per_folder == [[], []]

    def test_header_and_folders(self, cfg):
        text = render_syncthing(cfg)
        assert text.startswith('<configuration version="32">\n')
        assert '<device id="SELF-DEVICE" name="proxy-1"' in text
        assert 'path="/opt/npm-data"' in text
        assert 'path="/etc/letsencrypt"' in text
        assert text.endswith("</configuration>\n")
        assert text.count('type="sendreceive"') == 2


# ── Operator README ──────────────────────────────────────────────────


class TestReadme:
    def test_describes_node(self, cfg):
        text = render_readme(cfg)
        assert text.startswith("# Cloud-Proxy HA node 10.0.0.2\n")
        assert "gcomm://10.0.0.2,10.0.0.3,10.0.0.4" in text
        assert "MASTER (priority 150) for floating IP 10.0.0.100" in text
        assert "`/opt/npm-data` and `/etc/letsencrypt`" in text

    def test_monitoring_commands(self, cfg):
        text = render_readme(cfg)
        assert "journalctl -u syncthing@root -f" in text
        assert "wsrep_cluster_size" in text
        assert "${" not in text

    def test_no_secrets(self, cfg):
        text = render_readme(cfg)
        for secret in ("rootpw", "xbpw", "securepass"):
            assert secret not in text


# ── Determinism / writing ────────────────────────────────────────────


class TestRenderAll:
    def test_order(self, cfg):
        assert [a.name for a in render_all(cfg)] == ARTIFACT_ORDER

    def test_byte_stable(self, full_values):
        a = render_all(HAConfig.from_values(full_values))
        b = render_all(HAConfig.from_values(dict(full_values)))
        assert [x.content for x in a] == [y.content for y in b]


class TestWriteArtifacts:
    def test_paths(self, cfg, tmp_path: Path):
        work = tmp_path / "work"
        root = tmp_path / "root"
        written = write_artifacts(cfg, workdir=work, root=root)
        assert written["init_sql"] == work / "db-init" / "init.sql"
        assert written["compose"] == work / "docker-compose.yml"
        assert written["env_file"] == work / ".env"
        assert written["readme"] == work / "README.md"
        assert written["galera"] == root / "etc" / "mysql" / "conf.d" / "galera.cnf"
        assert written["keepalived"] == root / "etc" / "keepalived" / "keepalived.conf"
        assert written["syncthing"] == root / "root" / ".config" / "syncthing" / "config.xml"
        for path in written.values():
            assert path.is_file()

    def test_targets_cover_all(self):
        assert set(WORKDIR_TARGETS) | set(SYSTEM_TARGETS) == set(ARTIFACT_ORDER)

    def test_data_dir_created(self, cfg, tmp_path: Path):
        write_artifacts(cfg, workdir=tmp_path, root=tmp_path / "root")
        assert (tmp_path / "root" / "opt" / "npm-data").is_dir()

    def test_content_matches_render(self, cfg, tmp_path: Path):
        written = write_artifacts(cfg, workdir=tmp_path, root=tmp_path)
        assert written["keepalived"].read_text() == render_keepalived(cfg)

    def test_rerun_byte_identical(self, cfg, tmp_path: Path):
        first = write_artifacts(cfg, workdir=tmp_path / "a", root=tmp_path / "a")
        second = write_artifacts(cfg, workdir=tmp_path / "b", root=tmp_path / "b")
        for name in ARTIFACT_ORDER:
            assert first[name].read_bytes() == second[name].read_bytes()

    def test_overwrites(self, cfg, full_values, tmp_path: Path):
        write_artifacts(cfg, workdir=tmp_path, root=tmp_path)
        other = _with(full_values, PRIORITY="100", ROLE="BACKUP")
        written = write_artifacts(other, workdir=tmp_path, root=tmp_path)
        assert "state BACKUP" in written["keepalived"].read_text()
