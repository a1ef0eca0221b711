"""
本地凭据存储

~/.myxb/config.yaml 中保存用户名和第一次 MD5 后的密码，
以及可选的网络配置（request_timeout / debug_http）。
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml


HOME_ENV_VAR = "MYXB_HOME"
CONFIG_FILE_NAME = "config.yaml"

DEFAULT_REQUEST_TIMEOUT = (5.0, 20.0)


@dataclass
class Credentials:
    username: str
    password_hash: str
    request_timeout: Tuple[float, float] = DEFAULT_REQUEST_TIMEOUT
    debug_http: bool = False

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "password_hash": self.password_hash,
            "request_timeout": list(self.request_timeout),
            "debug_http": self.debug_http,
        }


def parse_request_timeout(value) -> Tuple[float, float]:
    """解析超时配置：[connect, read] 或单个数字（只作为 read timeout）

    配置错误时使用默认值。
    """
    try:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (DEFAULT_REQUEST_TIMEOUT[0], float(value))
    except (TypeError, ValueError):
        pass
    return DEFAULT_REQUEST_TIMEOUT


def get_config_dir() -> Path:
    env_dir = os.environ.get(HOME_ENV_VAR)
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".myxb"


def get_config_path() -> Path:
    """返回配置文件路径，目录不存在时创建（权限 0700）"""
    config_dir = get_config_dir()
    config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    return config_dir / CONFIG_FILE_NAME


def load_credentials() -> Optional[Credentials]:
    """读取已保存的凭据，文件不存在时返回 None

    Raises:
        ValueError: 文件存在但无法解析或内容不完整
    """
    config_path = get_config_path()
    if not config_path.exists():
        return None

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=yaml.FullLoader)
    except yaml.YAMLError as e:
        raise ValueError(f"配置文件 {config_path} 格式错误: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"配置文件 {config_path} 格式错误")

    for field_name in ("username", "password_hash"):
        if not data.get(field_name):
            raise ValueError(f"配置文件缺少必要字段: {field_name}")

    return Credentials(
        username=str(data["username"]),
        password_hash=str(data["password_hash"]),
        request_timeout=parse_request_timeout(data.get("request_timeout")),
        debug_http=bool(data.get("debug_http", False)),
    )


def save_credentials(credentials: Credentials) -> Path:
    """保存凭据（权限 0600），返回配置文件路径"""
    config_path = get_config_path()
    fd = os.open(config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        yaml.safe_dump(credentials.to_dict(), f, allow_unicode=True, sort_keys=False)
    return config_path


def delete_credentials() -> bool:
    """删除凭据文件，返回是否确实删除了文件"""
    config_path = get_config_path()
    try:
        config_path.unlink()
    except FileNotFoundError:
        return False
    return True
