from ipaddress import ip_address

import pytest

from annego import config
from annego.config import ISP, HostInfoConfig, HostInfoError

HOSTINFO = """\
status=1
area_id=3
city_id=1296
server_id=73634
sec_group_id=538
pri_group_id=538
ip_isp_list=221.228.107.123:CTL,103.229.149.122:CNC,112.25.251.123:MOB,10.25.66.99:INTRANET
"""


@pytest.fixture
def hostinfo_path(tmp_path):
    path = tmp_path / "hostinfo.ini"
    path.write_text(HOSTINFO, encoding="utf-8")
    return str(path)


def test_host_info(hostinfo_path):
    cfg = config.try_load_host_info(hostinfo_path)
    expected = {
        ISP.CTL: ip_address("221.228.107.123"),
        ISP.CNC: ip_address("103.229.149.122"),
        ISP.MOB: ip_address("112.25.251.123"),
        ISP.INTRANET: ip_address("10.25.66.99"),
    }
    assert cfg is not None
    assert cfg.server_id == 73634
    assert cfg.city_id == 1296
    assert cfg.area == 3
    assert cfg.pri_group_id == 538
    assert cfg.sec_group_id == 538
    assert cfg.get_isp() == ISP.CTL
    assert cfg.get_ip() == ip_address("221.228.107.123")
    assert cfg.ip_list == expected


def test_select_best_ip(hostinfo_path):
    cfg = config.try_load_host_info(hostinfo_path)
    ips = {
        ISP.CTL: ip_address("221.228.107.123"),
        ISP.CNC: ip_address("103.229.149.122"),
        ISP.MOB: ip_address("112.25.251.123"),
        ISP.INTRANET: ip_address("10.25.66.99"),
    }
    assert cfg.select_best_ip(ips) == ip_address("221.228.107.123")

    ips = {
        ISP.CNC: ip_address("103.229.149.122"),
        ISP.MOB: ip_address("112.25.251.123"),
        ISP.INTRANET: ip_address("10.25.66.99"),
    }
    assert cfg.select_best_ip(ips) == ip_address("103.229.149.122")

    ips = {
        ISP.ASIA: ip_address("103.229.149.122"),
        ISP.SA: ip_address("10.25.66.99"),
    }
    assert cfg.select_best_ip(ips) == ip_address("103.229.149.122")


def test_select_best_ip_empty():
    assert HostInfoConfig().select_best_ip({}) is None


def test_empty_config_has_no_isp():
    cfg = HostInfoConfig()
    assert cfg.get_isp() == 0
    assert cfg.get_ip() is None


def test_parse_skips_bad_entries():
    parsed = config.parse_host_ip_list("1.2.3.4:CTL,bad,nope:CNC,5.6.7.8:XYZ,9.9.9.9:HK")
    assert parsed == {ISP.CTL: ip_address("1.2.3.4"), ISP.ASIA: ip_address("9.9.9.9")}


def test_load_empty_ip_list(tmp_path):
    path = tmp_path / "hostinfo.ini"
    path.write_text("status=1\nip_isp_list=\n", encoding="utf-8")
    with pytest.raises(HostInfoError):
        config.load_host_info(str(path))


def test_load_missing_file(tmp_path):
    missing = str(tmp_path / "none.ini")
    with pytest.raises(HostInfoError):
        config.load_host_info(missing)
    assert config.try_load_host_info(missing) is None


def test_bad_numbers_become_zero(tmp_path):
    path = tmp_path / "hostinfo.ini"
    path.write_text("server_id=abc\ncity_id=0x10\nip_isp_list=1.2.3.4:EU\n", encoding="utf-8")
    cfg = config.load_host_info(str(path))
    assert cfg.server_id == 0
    assert cfg.city_id == 16
    assert cfg.get_isp() == ISP.EU


def test_init_default_host_info(hostinfo_path, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_HOSTINFO_PATH", hostinfo_path)
    monkeypatch.setattr(config, "default_host_info", None)
    cfg = config.init_default_host_info()
    assert cfg.server_id == 73634
    assert config.default_host_info is cfg
    assert config.init_default_host_info() is cfg


def test_init_default_host_info_missing(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_HOSTINFO_PATH", str(tmp_path / "none.ini"))
    monkeypatch.setattr(config, "default_host_info", None)
    with pytest.raises(HostInfoError):
        config.init_default_host_info()