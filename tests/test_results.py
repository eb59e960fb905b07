from webui_secrets.vault import Result, Status


class TestResult:

    def test_only_ok_is_truthy(self):
        assert Result.success()
        assert not Result.not_found()
        assert not Result.unavailable()
        assert not Result.decrypt_failed()
        assert not Result.failed()

    def test_falsy_value_in_successful_result(self):
        result = Result.success("")
        assert result
        assert result.ok
        assert result.value == ""

    def test_unwrap_or(self):
        assert Result.success(0).unwrap_or(5) == 0
        assert Result.not_found().unwrap_or("fallback") == "fallback"
        assert Result.unavailable([]).unwrap_or(None) is None

    def test_status_values(self):
        assert Result.decrypt_failed().status is Status.DECRYPT_FAILED
        assert Status.UNAVAILABLE.value == "unavailable"
