"""
Random Image 测试配置文件

Fixtures 是测试的"准备工作"：在测试运行前创建所需的对象和环境。

关键概念：
- tmp_path：pytest 内置 fixture，每个测试一个独立的临时目录
- images_dir / config / app / client 层层组合
"""

import sys
from pathlib import Path

import httpx
import pytest

# 添加 backend 目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from random_image.config import ImageServerConfig
from random_image.main import create_app


# 最小的合法文件头，内容本身不重要
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


# ============================================
# Filesystem Fixtures
# ============================================

@pytest.fixture
def images_dir(tmp_path):
    """
    一个空的图片目录。
    """
    folder = tmp_path / "images"
    folder.mkdir()
    return folder


@pytest.fixture
def images_dir_with_files(images_dir):
    """
    包含测试文件的图片目录。

    预置文件：
    - cat.png / dog.JPG: 支持的格式
    - notes.txt: 不支持，应被过滤
    - nested.png/: 目录，应被过滤
    """
    (images_dir / "cat.png").write_bytes(PNG_BYTES)
    (images_dir / "dog.JPG").write_bytes(JPEG_BYTES)
    (images_dir / "notes.txt").write_text("not an image")
    (images_dir / "nested.png").mkdir()
    return images_dir


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "access.log"


# ============================================
# App Fixtures
# ============================================

def make_config(images_dir, log_file, **overrides) -> ImageServerConfig:
    """构建一个指向临时目录的配置"""
    values = {
        "images_folder": str(images_dir),
        "log_file": str(log_file),
    }
    values.update(overrides)
    return ImageServerConfig(**values)


@pytest.fixture
def config(images_dir_with_files, log_file):
    return make_config(images_dir_with_files, log_file)


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
async def client(app):
    """
    进程内的 HTTP 客户端，不需要真的监听端口。

    使用方式：
    ```python
    async def test_list(client):
        response = await client.get("/list")
        assert response.status_code == 200
    ```
    """
    transport = httpx.ASGITransport(app=app, client=("127.0.0.1", 54321))
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


def client_for(app) -> httpx.AsyncClient:
    """给需要自定义 app 的测试用"""
    transport = httpx.ASGITransport(app=app, client=("127.0.0.1", 54321))
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


# ============================================
# Logging Isolation
# ============================================

@pytest.fixture(autouse=True)
def reset_access_stdout_handler():
    """
    每个测试结束后移除 stdout 访问日志 handler。

    pytest 在测试之间会替换并关闭 sys.stdout（capsys），
    保留的 handler 会指向已关闭的流。
    """
    from random_image.access_log import access_logger
    from random_image.main import ACCESS_HANDLER_NAME

    yield
    for handler in list(access_logger.handlers):
        if handler.get_name() == ACCESS_HANDLER_NAME:
            access_logger.removeHandler(handler)
