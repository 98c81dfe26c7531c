import os
import tempfile

# settings 在导入时读取环境变量，必须在导入 gpt_shell 之前设置
os.environ.setdefault("GPT_SHELL_CONFIG_DIR", tempfile.mkdtemp(prefix="gpt-shell-test-"))
# rich 在导入时探测终端，测试输出不带颜色控制码
os.environ["TERM"] = "dumb"

import pytest

from gpt_shell.config.settings import settings


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "config_dir", tmp_path)
    return tmp_path
