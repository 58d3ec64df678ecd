"""Output formatting for activity reports."""

import csv
import io
import json
import os

from ..models import Report


# ANSI color codes
GREEN = '\033[92m'
RED = '\033[91m'
CYAN = '\033[96m'
BOLD = '\033[1m'
RESET = '\033[0m'

OUTPUT_FORMATS = ('json', 'pretty', 'summary', 'csv')


class ReportFormatter:
    """Serializes a finished report as JSON, a text summary or CSV."""

    def __init__(self, report: Report):
        self.report = report
        self.data = report.to_dict()

    def generate(self, fmt: str = 'json') -> str:
        """Render the report in the requested format.

        Args:
            fmt: One of ``json``, ``pretty``, ``summary`` or ``csv``

        Returns:
            The rendered document

        Raises:
            ValueError: If the format is unknown
        """
        if fmt == 'json':
            return json.dumps(self.data)
        if fmt == 'pretty':
            return json.dumps(self.data, indent=2)
        if fmt == 'summary':
            return self.summary()
        if fmt == 'csv':
            return self.to_csv()
        raise ValueError(f"Unknown format: {fmt}")

    def save(self, path: str, fmt: str = 'json') -> str:
        """Render the report and write it to a file.

        Returns:
            Absolute path of the written file
        """
        content = self.generate(fmt)
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        return os.path.abspath(path)

    def summary(self) -> str:
        """Plain-text overview of the report."""
        metadata = self.data['metadata']
        lines = ["Repository Activity Report", "=" * 40]

        repo = metadata.get('repository')
        if repo:
            lines.append(f"Repository: {repo.get('full_name')}")
            if repo.get('description'):
                lines.append(f"Description: {repo['description']}")
            if repo.get('language'):
                lines.append(f"Primary Language: {repo['language']}")
            lines.append(f"Stars: {repo.get('stars')} | Forks: {repo.get('forks')}")
            lines.append("")

        period = metadata['period']
        if period['since'] or period['until']:
            lines.append("Analysis Period:")
            lines.append(f"  From: {period['since'] or 'Beginning'}")
            lines.append(f"  To: {period['until'] or 'Present'}")
            lines.append("")

        lines.append(f"Analyzed at: {metadata['analyzed_at']}")
        lines.append("")

        if self.report.commits:
            lines.append("Commits by Author:")
            for author, summary in self.report.commits.items():
                lines.append(f"  {author}:")
                lines.append(f"    Total Commits: {summary.total_commits}")
                lines.append(f"    Additions: +{summary.total_additions}")
                lines.append(f"    Deletions: -{summary.total_deletions}")
            lines.append("")

        if self.report.pull_requests:
            lines.append("Pull Requests by Author:")
            for author, summary in self.report.pull_requests.items():
                lines.append(f"  {author}:")
                lines.append(f"    Total PRs: {summary.total_prs}")
                lines.append(f"    Merged: {summary.merged}")
                lines.append(f"    Open: {summary.open}")
                lines.append(f"    Closed: {summary.closed}")
                lines.append(f"    Additions: +{summary.total_additions}")
                lines.append(f"    Deletions: -{summary.total_deletions}")
            lines.append("")

        if self.report.lines_of_code:
            lines.append("Current Lines of Code by Author:")
            sorted_loc = sorted(self.report.lines_of_code.items(), key=lambda item: -item[1])
            total_lines = sum(count for _, count in sorted_loc)
            for author, count in sorted_loc:
                percentage = round(count / total_lines * 100, 1) if total_lines else 0.0
                lines.append(f"  {author}: {count} lines ({percentage}%)")
            lines.append(f"  Total: {total_lines} lines")
            lines.append("")

        if self.report.commit_activity:
            total_commits = sum(
                value.get('total', 0) if isinstance(value, dict) else value
                for value in self.report.commit_activity.values()
            )
            periods = len(self.report.commit_activity)
            lines.append("Commit Activity:")
            lines.append(f"  Total Commits: {total_commits}")
            lines.append(f"  Active Periods: {periods}")
            lines.append(f"  Average Commits/Period: {round(total_commits / periods, 1)}")
            lines.append("")

        if self.report.warnings:
            lines.append("Warnings:")
            for warning in self.report.warnings:
                lines.append(f"  - {warning}")
            lines.append("")

        return "\n".join(lines)

    def to_csv(self) -> str:
        """Per-author metrics as ``Metric,Author,Value,Details`` rows."""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(['Metric', 'Author', 'Value', 'Details'])

        for author, summary in self.report.commits.items():
            writer.writerow(['Commits', author, summary.total_commits, 'Total commits'])
            writer.writerow(['Additions', author, summary.total_additions, 'Total lines added'])
            writer.writerow(['Deletions', author, summary.total_deletions, 'Total lines deleted'])

        for author, summary in self.report.pull_requests.items():
            writer.writerow(['Pull Requests', author, summary.total_prs, 'Total PRs'])
            writer.writerow(['PR Merged', author, summary.merged, 'Merged PRs'])
            writer.writerow(['PR Open', author, summary.open, 'Open PRs'])

        for author, count in self.report.lines_of_code.items():
            writer.writerow(['Lines of Code', author, count, 'Current lines in codebase'])

        return buffer.getvalue()

    def print_summary(self):
        """Print a colored headline followed by the text summary."""
        print("\n" + "=" * 80)
        print(f"{BOLD}{CYAN}REPOSITORY ACTIVITY{RESET}")
        print("=" * 80)

        commits = sum(s.total_commits for s in self.report.commits.values())
        prs = sum(s.total_prs for s in self.report.pull_requests.values())
        print(f"{GREEN}{commits}{RESET} commits, {GREEN}{prs}{RESET} pull requests, "
              f"{len(set(self.report.commits) | set(self.report.pull_requests))} author(s)")
        for warning in self.report.warnings:
            print(f"{RED}! {warning}{RESET}")
        print()
        print(self.summary())
