import pytest
from botocore.exceptions import ClientError

from agent.profiles import ProfileResolver


MODEL = "anthropic.claude-sonnet-4-20250514-v1:0"


class FakePaginator:
    def __init__(self, pages):
        self.pages = pages
        self.kwargs = None

    def paginate(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.pages)


class FakeBedrock:
    def __init__(self, *profile_ids, error=None, page_size=2):
        ids = list(profile_ids)
        self.pages = [
            {"inferenceProfileSummaries": [{"inferenceProfileId": i} for i in ids[n:n + page_size]]}
            for n in range(0, len(ids), page_size)
        ]
        self.error = error
        self.calls = 0
        self.paginator = None

    def get_paginator(self, operation):
        assert operation == "list_inference_profiles"
        self.calls += 1
        if self.error:
            raise self.error
        self.paginator = FakePaginator(self.pages)
        return self.paginator


class UnusedClient:
    def get_paginator(self, operation):
        raise AssertionError("profiles should not be listed")


def test_global_profile_is_preferred():
    client = FakeBedrock("us." + MODEL, "eu." + MODEL, "apac.other", "global." + MODEL)
    resolver = ProfileResolver("us-east-1", client=client)

    assert resolver.resolve(MODEL) == "global." + MODEL
    assert client.paginator.kwargs["typeEquals"] == "SYSTEM_DEFINED"


def test_regional_profile():
    client = FakeBedrock("us.anthropic.claude-3-haiku-20240307-v1:0", "us." + MODEL, "eu." + MODEL)
    assert ProfileResolver("us-east-1", client=client).resolve(MODEL) == "us." + MODEL


def test_prefixed_model_is_returned_unchanged():
    resolver = ProfileResolver("us-east-1", client=UnusedClient())
    assert resolver.resolve("eu." + MODEL) == "eu." + MODEL
    assert resolver.resolve("global." + MODEL) == "global." + MODEL


def test_no_profile_keeps_model_id(tmp_path):
    client = FakeBedrock("us.anthropic.claude-3-haiku-20240307-v1:0")
    resolver = ProfileResolver("us-east-1", cache_path=str(tmp_path / "cache.db"), client=client)
    assert resolver.resolve(MODEL) == MODEL
    assert resolver.resolve(MODEL) == MODEL
    assert client.calls == 2


def test_lookup_failure_keeps_model_id():
    error = ClientError({"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "ListInferenceProfiles")
    resolver = ProfileResolver("us-east-1", client=FakeBedrock(error=error))
    assert resolver.resolve(MODEL) == MODEL


def test_resolved_profile_is_cached(tmp_path):
    cache_path = str(tmp_path / "bods" / "cache.db")
    ProfileResolver("us-east-1", cache_path=cache_path, client=FakeBedrock("us." + MODEL)).resolve(MODEL)

    resolver = ProfileResolver("us-east-1", cache_path=cache_path, client=UnusedClient())
    assert resolver.resolve(MODEL) == "us." + MODEL


def test_cache_is_per_region(tmp_path):
    cache_path = str(tmp_path / "cache.db")
    ProfileResolver("us-east-1", cache_path=cache_path, client=FakeBedrock("us." + MODEL)).resolve(MODEL)

    client = FakeBedrock("eu." + MODEL)
    assert ProfileResolver("eu-west-1", cache_path=cache_path, client=client).resolve(MODEL) == "eu." + MODEL
    assert client.calls == 1


def test_expired_cache_entry_is_looked_up_again(tmp_path):
    cache_path = str(tmp_path / "cache.db")
    ProfileResolver("us-east-1", cache_path=cache_path, client=FakeBedrock("us." + MODEL), ttl=0).resolve(MODEL)

    client = FakeBedrock("global." + MODEL)
    assert ProfileResolver("us-east-1", cache_path=cache_path, client=client).resolve(MODEL) == "global." + MODEL
    assert client.calls == 1


@pytest.mark.parametrize("cache_path", ["", None])
def test_cache_disabled(cache_path):
    client = FakeBedrock("us." + MODEL)
    resolver = ProfileResolver("us-east-1", cache_path=cache_path, client=client)
    resolver.resolve(MODEL)
    resolver.resolve(MODEL)
    assert client.calls == 2
