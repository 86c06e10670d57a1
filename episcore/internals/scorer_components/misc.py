from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

from episcore.internals.pipeline import CTEPipeline

if TYPE_CHECKING:
    from episcore.internals.scorer import Scorer


class ScorerMisc:
    """Miscellaneous methods on the scorer that don't fit into other categories.
    Accessed via `scorer.misc`.
    """

    def __init__(self, scorer: Scorer):
        self._scorer = scorer

    def save_settings_to_json(
        self, out_path: str | None = None, overwrite: bool = False
    ) -> dict[str, Any]:
        """Save the resolved settings, including every check's code levels, to a
        `.json` file.

        The settings can later be loaded into a new scorer using
        `Scorer(df, settings="path/to/settings.json", db_api=db_api)`.

        Examples:
            ```py
            scorer.misc.save_settings_to_json("my_settings.json", overwrite=True)
            ```
        Args:
            out_path (str, optional): File path for json file. If None, don't save to
                file. Defaults to None.
            overwrite (bool, optional): Overwrite if already exists? Defaults to False.

        Returns:
            dict: The settings as a dictionary.
        """
        settings_dict = self._scorer._settings_obj.as_dict()
        if out_path:
            if os.path.isfile(out_path) and not overwrite:
                raise ValueError(
                    f"The path {out_path} already exists. Please provide a different "
                    "path or set overwrite=True"
                )
            with open(out_path, "w", encoding="utf-8") as f:
                json.dump(settings_dict, f, indent=4)
        return settings_dict

    def query_sql(self, sql, output_type="pandas"):
        """
        Run a SQL query against your backend database and return
        the resulting output.

        Examples:
            ```py
            df_scores = scorer.weighting.total_scores()
            scorer.misc.query_sql(
                f"select * from {df_scores.physical_name} "
                "order by adjusted_total_score limit 10"
            )
            ```

        Args:
            sql (str): The SQL to be queried.
            output_type (str): One of episcore_df or pandas.
                This determines the type of table that your results are output in.
        """

        output_tablename_templated = "__episcore__df_sql_query"

        pipeline = CTEPipeline()
        pipeline.enqueue_sql(sql, output_tablename_templated)
        episcore_dataframe = self._scorer._db_api.sql_pipeline_to_episcore_dataframe(
            pipeline
        )

        if output_type == "episcore_df":
            return episcore_dataframe
        elif output_type == "pandas":
            out = episcore_dataframe.as_pandas_dataframe()
            # If pandas, drop the table to cleanup the db
            episcore_dataframe.drop_table_from_database_and_remove_from_cache()
            return out
        else:
            raise ValueError(
                f"output_type '{output_type}' is not supported. "
                "Must be one of 'episcore_df' or 'pandas'"
            )
