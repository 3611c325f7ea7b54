import pytest
from pydantic import ValidationError
from quizengine.core.config import Settings

def test_store_backend_is_normalised():
    assert Settings(STORE_BACKEND="SQL").STORE_BACKEND == "sql"

def test_unknown_store_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(STORE_BACKEND="mongo")

def test_cors_origins_from_comma_string():
    assert Settings(CORS_ORIGINS="http://a.test, http://b.test").CORS_ORIGINS == ["http://a.test", "http://b.test"]
