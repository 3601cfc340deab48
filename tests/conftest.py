"""Shared fixtures: a token store with a fresh credential and a scripted executor."""
import pytest
from fakes import FakeConsent, FakeProvider, FakeRepository, make_token

from apifactory.application.services.authenticator import Authenticator
from apifactory.application.services.function_generator import FunctionGenerator
from apifactory.application.services.request_executor import RequestExecutor, RetryPolicy
from apifactory.application.services.token_store import TokenStore
from apifactory.domain.value_objects.oauth2_credentials import OAuth2Config


@pytest.fixture
def oauth2_config():
  return OAuth2Config(
    client_id='client-id',
    client_secret='client-secret',
    scopes=('https://www.googleapis.com/auth/urlshortener',),
  )


@pytest.fixture
def provider():
  return FakeProvider()


@pytest.fixture
def consent():
  return FakeConsent()


@pytest.fixture
def token_store(oauth2_config, provider, consent):
  store = TokenStore(Authenticator(oauth2_config, provider, consent))
  store.set_credential(make_token())
  yield store
  store.close()


@pytest.fixture
def repository():
  return FakeRepository()


@pytest.fixture
def sleeps():
  return []


@pytest.fixture
def executor(repository, token_store, sleeps):
  return RequestExecutor(
    repository=repository,
    token_store=token_store,
    retry_policy=RetryPolicy(max_attempts=3, jitter=0),
    sleep=sleeps.append,
  )


@pytest.fixture
def generator(executor):
  return FunctionGenerator(executor)
