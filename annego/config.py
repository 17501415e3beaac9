"""Host information: ISP types and the host's address list from an INI file."""

from __future__ import annotations

import configparser
import ipaddress
import re
from dataclasses import dataclass, field
from enum import IntEnum

from . import logger


class ISP(IntEnum):
    """ISP kinds; the default address is the one with the smallest value."""

    AUTO_DETECT = 0
    CTL = 1
    CNC = 2
    CNII = 4
    EDU = 8
    WBN = 16
    MOB = 32
    BGP = 64
    ASIA = 128
    SA = 256
    EU = 512
    NA = 1024
    INTRANET = 32768
    MAX_ISP = 65536


IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

DEFAULT_HOSTINFO_PATH = "/home/dspeak/yyms/hostinfo.ini"

_ISP_NAMES = {
    "CTL": ISP.CTL,
    "CNC": ISP.CNC,
    "EDU": ISP.EDU,
    "WBN": ISP.WBN,
    "MOB": ISP.MOB,
    "BGP": ISP.BGP,
    "HK": ISP.ASIA,
    "BRA": ISP.SA,
    "EU": ISP.EU,
    "NA": ISP.NA,
    "INTRANET": ISP.INTRANET,
}

_ROOT_SECTION = "annego:root"


class HostInfoError(Exception):
    """The host information file could not be loaded."""


@dataclass
class HostInfoConfig:
    ip_list: dict[int, IPAddress] = field(default_factory=dict)
    status: int = 0
    area: int = 0
    city_id: int = 0
    server_id: int = 0
    sec_group_id: int = 0
    pri_group_id: int = 0

    def get_isp(self) -> int:
        """Smallest ISP of the address list, or 0 when it is empty."""
        if not self.ip_list:
            return 0
        return min([*self.ip_list, ISP.MAX_ISP])

    def get_ip(self) -> IPAddress | None:
        """The address of the smallest ISP, or None."""
        isp = self.get_isp()
        if isp == 0:
            return None
        return self.ip_list.get(isp)

    def select_best_ip(self, ip_list: dict[int, IPAddress]) -> IPAddress | None:
        """Pick the address on this host's ISP, else the smallest ISP's address."""
        if not ip_list:
            return None
        isp = self.get_isp()
        if isp in ip_list:
            return ip_list[isp]
        return ip_list[min(ip_list)]


def parse_host_ip_list(info: str) -> dict[int, IPAddress]:
    """Parse ``ip:ISP`` entries separated by commas, skipping bad ones."""
    result: dict[int, IPAddress] = {}
    for entry in info.split(","):
        parts = entry.split(":")
        if len(parts) < 2:
            logger.warning("Load ipinfo error: %s", entry)
            continue
        try:
            ip = ipaddress.ip_address(parts[0])
        except ValueError:
            logger.warning("parse ipinfo error: %s", entry)
            continue
        isp = _ISP_NAMES.get(parts[1])
        if isp is not None:
            result[isp] = ip
    return result


def _parse_int(value: str) -> int:
    value = value.strip()
    try:
        return int(value, 0)
    except ValueError:
        pass
    if re.fullmatch(r"[+-]?0[0-7]+", value):
        return int(value, 8)
    return 0


def load_host_info(path: str) -> HostInfoConfig:
    """Load the host information file; raise HostInfoError on failure."""
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        inline_comment_prefixes=("#", ";"),
        default_section="annego:defaults",
    )
    parser.optionxform = str  # type: ignore[assignment, method-assign]
    try:
        with open(path, encoding="utf-8") as fp:
            content = fp.read()
        parser.read_string(f"[{_ROOT_SECTION}]\n{content}", source=str(path))
    except (OSError, UnicodeDecodeError, configparser.Error) as exc:
        raise HostInfoError(f"load host info {path}: {exc}") from exc

    section = parser[_ROOT_SECTION]

    def number(key: str) -> int:
        return _parse_int(section.get(key, ""))

    config = HostInfoConfig(
        ip_list=parse_host_ip_list(section.get("ip_isp_list", "")),
        status=number("status"),
        area=number("area_id"),
        city_id=number("city_id"),
        server_id=number("server_id"),
        sec_group_id=number("sec_group_id"),
        pri_group_id=number("pri_group_id"),
    )
    if not config.ip_list:
        raise HostInfoError("HostInfo IPList empty")
    return config


def try_load_host_info(path: str) -> HostInfoConfig | None:
    """Load the host information file; log the error and return None on failure."""
    try:
        return load_host_info(path)
    except HostInfoError as exc:
        logger.error("load HostInfo %s error: %s", path, exc)
        return None


default_host_info: HostInfoConfig | None = None


def init_default_host_info() -> HostInfoConfig:
    """Load ``DEFAULT_HOSTINFO_PATH`` into ``default_host_info`` once."""
    global default_host_info
    if default_host_info is None:
        default_host_info = load_host_info(DEFAULT_HOSTINFO_PATH)
    return default_host_info