import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

import pandas as pd

from paradise.core.managers.config_manager import config_manager
from paradise.core.utils.path_utils import PathUtils
from auditor.model import Issue
from auditor.wcag import level_of

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {'error': 1, 'warning': 2, 'info': 3}

COLUMNS = [
    'job', 'file', 'line', 'column', 'element', 'kind', 'severity', 'wcag',
    'analyzer', 'confidence', 'score', 'message', 'fix',
]


class ReportController:
    """
    Tabular views and exports of analysis issues.
    Works on a single issue list or on batch results (one 'job' per result).
    """

    def __init__(self, issues: Optional[List[Issue]] = None, job: str = ""):
        self._rows: List[Dict[str, Any]] = []
        if issues:
            self.add_issues(issues, job)

    @classmethod
    def from_results(cls, results) -> "ReportController":
        """Builds a report from AnalysisResult objects, skipping failed jobs."""
        controller = cls()
        for result in results:
            if result.error:
                logger.warning(f"Job '{result.name}' failed and is not part of the report: {result.error}")
                continue
            controller.add_issues(result.issues, result.name)
        return controller

    def add_issues(self, issues: List[Issue], job: str = ""):
        for issue in issues:
            location = issue.location
            self._rows.append({
                'job': job,
                'file': location.file if location else "",
                'line': location.line if location else 0,
                'column': location.column if location else 0,
                'element': location.element if location else "",
                'kind': issue.kind,
                'severity': issue.severity,
                'wcag': issue.wcag_criteria,
                'analyzer': issue.analyzer,
                'confidence': issue.confidence.level,
                'score': issue.confidence.score,
                'message': issue.message,
                'fix': issue.fix.description if issue.fix else "",
            })

    # --- VIEWS ---

    def to_dataframe(self) -> pd.DataFrame:
        """One row per issue, sorted by severity then location."""
        df = pd.DataFrame(self._rows, columns=COLUMNS)
        if df.empty:
            return df
        df['sev_rank'] = df['severity'].map(SEVERITY_ORDER)
        df = df.sort_values(by=['sev_rank', 'job', 'file', 'line', 'column', 'kind'], kind='mergesort')
        return df.drop(columns=['sev_rank']).reset_index(drop=True)

    def severity_summary(self) -> Dict[str, int]:
        summary = {"error": 0, "warning": 0, "info": 0, "total": 0}
        for row in self._rows:
            summary[row['severity']] += 1
            summary["total"] += 1
        return summary

    def kind_summary(self) -> pd.DataFrame:
        """Issue count per kind, with the strictest severity seen for it."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=['kind', 'severity', 'count'])
        df['sev_rank'] = df['severity'].map(SEVERITY_ORDER)
        summary = df.groupby('kind').agg(
            sev_rank=('sev_rank', 'min'),
            count=('kind', 'count'),
        ).reset_index()
        rank_to_severity = {rank: name for name, rank in SEVERITY_ORDER.items()}
        summary['severity'] = summary['sev_rank'].map(rank_to_severity)
        summary = summary.sort_values(by=['sev_rank', 'count', 'kind'], ascending=[True, False, True])
        return summary[['kind', 'severity', 'count']].reset_index(drop=True)

    def criterion_summary(self) -> pd.DataFrame:
        """Issue count per WCAG success criterion; an issue counts once per criterion it cites."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=['criterion', 'level', 'count'])
        exploded = df[['wcag']].explode('wcag').dropna()
        summary = exploded.groupby('wcag').size().reset_index(name='count')
        summary = summary.rename(columns={'wcag': 'criterion'})
        summary['level'] = summary['criterion'].map(lambda c: level_of(c) or "")
        return summary[['criterion', 'level', 'count']].sort_values(by='criterion').reset_index(drop=True)

    # --- EXPORTS ---

    @staticmethod
    def _target(path: Optional[Union[str, Path]], suffix: str) -> Path:
        if path is not None:
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            return target
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        dirname = config_manager.get_nested("reports.directory", ".paradise_reports")
        return PathUtils.get_reports_dir(dirname) / f"paradise_report_{timestamp}{suffix}"

    def _export_frame(self) -> pd.DataFrame:
        df = self.to_dataframe()
        df['wcag'] = df['wcag'].map(lambda criteria: ", ".join(criteria))
        return df

    def export_csv(self, path: Optional[Union[str, Path]] = None) -> Path:
        target = self._target(path, ".csv")
        self._export_frame().to_csv(target, index=False)
        logger.info(f"CSV report written to {target}")
        return target

    def export_json(self, path: Optional[Union[str, Path]] = None) -> Path:
        target = self._target(path, ".json")
        self.to_dataframe().to_json(target, orient='records', indent=2)
        logger.info(f"JSON report written to {target}")
        return target

    def export_excel(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Excel workbook with a summary sheet, an action list and the criteria overview."""
        target = self._target(path, ".xlsx")
        try:
            with pd.ExcelWriter(target, engine='openpyxl') as writer:
                self.kind_summary().to_excel(writer, sheet_name="Summary", index=False)
                self._export_frame().to_excel(writer, sheet_name="Action List", index=False)
                self.criterion_summary().to_excel(writer, sheet_name="WCAG Criteria", index=False)

                for sheet in writer.sheets.values():
                    for col in sheet.columns:
                        max_len = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
                        sheet.column_dimensions[col[0].column_letter].width = min(max_len + 2, 100)
        except PermissionError:
            logger.error(f"Cannot write {target}; is the file open in another program?")
            raise
        logger.info(f"Excel report written to {target}")
        return target
