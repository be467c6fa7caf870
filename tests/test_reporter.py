"""Tests for console progress reporting."""

from sftpsync.reporter import SyncSummary, render_summary


class TestSyncReporter:
    """Tests for progress lines and counters."""

    def test_lines_are_aligned_and_counted(self, reporter, output) -> None:
        reporter.file_uploaded('a.txt')
        reporter.remote_dir_removed('old')
        reporter.sync_completed('')

        lines = output.getvalue().splitlines()
        assert lines == [
            "      file uploaded : a.txt",
            " remote dir removed : old",
            "     sync completed : (root dir)",
        ]
        assert reporter.summary.uploaded_files == 1
        assert reporter.summary.removed_dirs == 1
        assert reporter.summary.synced_dirs == 1

    def test_quiet_reporter_still_counts(self, reporter, output) -> None:
        reporter.quiet = True
        reporter.skipped('a.txt')
        reporter.entry_error('b.txt')
        assert output.getvalue() == ''
        assert (reporter.summary.skipped, reporter.summary.errors) == (1, 1)

    def test_header(self, reporter, output) -> None:
        reporter.header('example.org', '/home/me/site', '/srv/site')
        text = output.getvalue()
        assert "* Deploying to host example.org" in text
        assert "* local dir  = /home/me/site" in text
        assert "* remote dir = /srv/site" in text

    def test_dry_run_entry(self, reporter, output) -> None:
        reporter.dry_run_entry('a.txt', 'file', 'file', 'noop', False, True, False)
        text = output.getvalue()
        assert "# a.txt" in text
        assert "action : noop -> (skip)" in text
        assert reporter.summary.skipped == 1


class TestSyncSummary:
    """Tests for the summary counters."""

    def test_changed(self) -> None:
        assert not SyncSummary(skipped=3, synced_dirs=1).changed
        assert SyncSummary(removed_files=1).changed

    def test_render_summary(self) -> None:
        text = render_summary(SyncSummary(uploaded_files=2, removed_dirs=1))
        assert "uploaded 2 file(s)" in text
        assert "1 dir(s); skipped" in text
