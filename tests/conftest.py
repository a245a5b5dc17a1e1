"""Shared test fixtures and configuration"""
from pathlib import Path

import pytest
import yaml
from fastapi.testclient import TestClient

from devproxy.models.config import AppConfig, InterceptorConfig


UPSTREAM_URL = "https://upstream.test"


@pytest.fixture
def frontend_crd_dict() -> dict:
    """Frontend CRD template as produced by the frontend operator"""
    return {
        'objects': [
            {
                'metadata': {'name': 'my-app'},
                'spec': {
                    'feoConfigEnabled': True,
                    'frontend': {'paths': ['/apps/my-app']},
                    'module': {
                        'manifestLocation': '/apps/my-app/fed-mods.json',
                        'modules': [
                            {'id': 'my-app', 'module': './RootApp', 'routes': [{'pathname': '/insights/my-app'}]}
                        ],
                    },
                    'bundleSegments': [
                        {
                            'segmentId': 'my-seg',
                            'bundleId': 'insights',
                            'position': 50,
                            'navItems': [
                                {'id': 'my-link', 'title': 'Mine', 'href': '/insights/mine'}
                            ],
                        }
                    ],
                    'searchEntries': [
                        {'id': 'my-app-search', 'title': 'My App', 'href': '/insights/my-app', 'frontendRef': 'my-app'}
                    ],
                    'serviceTiles': [
                        {'id': 'my-tile', 'section': 'automation', 'group': 'ansible', 'title': 'My Tile', 'frontendRef': 'my-app'}
                    ],
                    'widgetRegistry': [
                        {'scope': 'myApp', 'module': './Widget', 'frontendRef': 'my-app'}
                    ],
                },
            }
        ]
    }


@pytest.fixture
def write_crd(tmp_path: Path):
    """Write a CRD dict to a temporary YAML file and return its path"""
    def _write(crd: dict, name: str = 'frontend.yaml') -> str:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(crd), encoding='utf-8')
        return str(path)
    return _write


@pytest.fixture
def crd_path(write_crd, frontend_crd_dict: dict) -> str:
    return write_crd(frontend_crd_dict)


@pytest.fixture
def interceptor_config(crd_path: str) -> InterceptorConfig:
    return InterceptorConfig(crd_path=crd_path)


@pytest.fixture
def app_config(interceptor_config: InterceptorConfig) -> AppConfig:
    return AppConfig(interceptor=interceptor_config, upstream_url=UPSTREAM_URL)


@pytest.fixture
def app_client(app_config: AppConfig):
    """FastAPI test client for the full proxy with the embedded script"""
    from devproxy.main import create_app

    with TestClient(create_app(app_config)) as client:
        yield client


@pytest.fixture(autouse=True)
def clear_config_cache(monkeypatch):
    """Isolate tests from the environment and the cached config"""
    from devproxy.core import config as config_module
    from devproxy.core import http_client as http_client_module

    for var in ('CONFIG_PATH', 'FEO_CRD_PATH', 'FEO_ENABLED', 'FEO_SCRIPT_TIMEOUT_SECS', 'UPSTREAM_URL'):
        monkeypatch.delenv(var, raising=False)

    config_module.clear_config_cache()
    http_client_module._http_client = None

    yield

    config_module.clear_config_cache()
    http_client_module._http_client = None
