import asyncio
from contextlib import asynccontextmanager, contextmanager
import logging
from typing import Optional

import aiohttp
import cachetools
import diskcache
from gidgethub import GitHubException
from gidgethub import aiohttp as gh_aiohttp
from tabulate import tabulate
import typer

from skipguard import config
from skipguard.cache import get_cache
from skipguard.decision import Evaluation, RunContext, evaluate_run
from skipguard.errors import MissingIdentity, SkipguardError
from skipguard.github.api import API
from skipguard.github.artifacts import ArtifactUploader
from skipguard.logger import get_log_handlers
from skipguard.metric import push_metrics
from skipguard.model import Inputs
from skipguard.storage import ArtifactLedgerStore, DiskLedgerStore, ledger_name
from skipguard.summary import build_outputs, render_summary, write_outputs, write_summary


logging.basicConfig(
    format="%(asctime)s %(name)s %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger("skipguard")

app = typer.Typer()
httpcache = cachetools.LRUCache(maxsize=500)


@app.callback()
def init():
    logging.getLogger().setLevel(config.OVERRIDE_LOGGING)
    logger.setLevel(config.OVERRIDE_LOGGING)
    get_log_handlers(logger)


def build_context() -> RunContext:
    if not config.GITHUB_REPOSITORY:
        raise MissingIdentity("Did not find the repository (GITHUB_REPOSITORY)")
    if not config.GITHUB_RUN_ID:
        raise MissingIdentity("Did not find the workflow run id (GITHUB_RUN_ID)")
    return RunContext(
        repo=config.GITHUB_REPOSITORY,
        run_id=int(config.GITHUB_RUN_ID),
        sha=config.GITHUB_SHA,
        job=config.GITHUB_JOB,
        action=config.GITHUB_ACTION,
        dry_run=config.DRY_RUN,
    )


@asynccontextmanager
async def github_api(context: RunContext):
    async with aiohttp.ClientSession() as session:
        gh = gh_aiohttp.GitHubAPI(
            session,
            "skipguard",
            oauth_token=config.GITHUB_TOKEN,
            cache=httpcache,
            base_url=config.GITHUB_API_URL,
        )
        yield API(
            gh,
            context.repo,
            session=session,
            token=config.GITHUB_TOKEN,
            base_url=config.GITHUB_API_URL,
        )


@contextmanager
def ledger_cache():
    if config.DISKCACHE_DIR is None:
        yield None
        return
    with get_cache() as cache:
        yield cache


def make_store_factory(
    api: API, context: RunContext, cache: Optional[diskcache.Cache] = None
):
    def make_store(workflow_id: int):
        name = ledger_name(workflow_id, context.job, context.action)
        if cache is not None:
            return DiskLedgerStore(
                cache, name, retention_days=config.LEDGER_RETENTION_DAYS
            )
        uploader = None
        if config.ACTIONS_RUNTIME_TOKEN and config.ACTIONS_RESULTS_URL:
            uploader = ArtifactUploader(
                api.session, config.ACTIONS_RUNTIME_TOKEN, config.ACTIONS_RESULTS_URL
            )
        return ArtifactLedgerStore(
            api,
            name,
            uploader=uploader,
            retention_days=config.LEDGER_RETENTION_DAYS,
            keep_artifacts=config.LEDGER_KEEP_ARTIFACTS,
        )

    return make_store


async def invoke(inputs: Inputs, context: RunContext) -> Evaluation:
    async with github_api(context) as api:
        with ledger_cache() as cache:
            evaluation = await evaluate_run(
                api,
                inputs=inputs,
                context=context,
                make_store=make_store_factory(api, context, cache),
                page_size=config.RUNS_PAGE_SIZE,
                max_ledger_entries=config.LEDGER_MAX_ENTRIES,
            )
        logger.info("Finished evaluation, API calls: %d", api.call_count)
        return evaluation


def emit(evaluation: Evaluation) -> None:
    if config.GITHUB_STEP_SUMMARY:
        write_summary(config.GITHUB_STEP_SUMMARY, render_summary(evaluation))

    if evaluation.failure is not None:
        return

    outputs = build_outputs(evaluation.decision)
    if config.GITHUB_OUTPUT:
        write_outputs(config.GITHUB_OUTPUT, outputs)
    else:
        for name, value in outputs.items():
            typer.echo(f"{name}={value}")


@app.command()
def run(
    paths: str = typer.Option("", envvar="INPUT_PATHS"),
    paths_ignore: str = typer.Option("", envvar="INPUT_PATHS_IGNORE"),
    paths_filter: str = typer.Option("", envvar="INPUT_PATHS_FILTER"),
    do_not_skip: str = typer.Option("", envvar="INPUT_DO_NOT_SKIP"),
    concurrent_skipping: str = typer.Option("", envvar="INPUT_CONCURRENT_SKIPPING"),
    cancel_others: str = typer.Option("", envvar="INPUT_CANCEL_OTHERS"),
    skip_after_successful_duplicate: str = typer.Option(
        "", envvar="INPUT_SKIP_AFTER_SUCCESSFUL_DUPLICATE"
    ),
):
    """Decide whether the current workflow run can be skipped."""
    try:
        inputs = Inputs.from_action_inputs(
            {
                "paths": paths,
                "paths_ignore": paths_ignore,
                "paths_filter": paths_filter,
                "do_not_skip": do_not_skip,
                "concurrent_skipping": concurrent_skipping,
                "cancel_others": cancel_others,
                "skip_after_successful_duplicate": skip_after_successful_duplicate,
            }
        )
        context = build_context()
        if not config.GITHUB_TOKEN:
            raise MissingIdentity("Did not find github_token")
    except SkipguardError as e:
        logger.error("Cannot evaluate run:\n%s", e)
        raise typer.Exit(code=1)

    try:
        evaluation = asyncio.run(invoke(inputs, context))
    except MissingIdentity as e:
        logger.error("%s", e)
        raise typer.Exit(code=1)
    except (GitHubException, aiohttp.ClientError) as e:
        logger.error("Failed to retrieve the current workflow run: %s", e)
        raise typer.Exit(code=1)
    finally:
        if config.PUSH_GATEWAY is not None:
            push_metrics(
                config.PUSH_GATEWAY, {"repository": context.repo, "job": context.job}
            )

    emit(evaluation)

    if evaluation.failure is not None:
        logger.error("%s", evaluation.failure.message)
        raise typer.Exit(code=1)


@app.command()
def show_ledger(workflow_id: int):
    """Print the memo ledger stored for a workflow."""
    context = build_context()

    async def handle():
        async with github_api(context) as api:
            with ledger_cache() as cache:
                store = make_store_factory(api, context, cache)(workflow_id)
                return store.name, await store.load()

    name, data = asyncio.run(handle())
    if data is None:
        typer.echo(f"No ledger data for {name}")
        return

    rows = []
    for run_id, entry in sorted(data.r.items(), reverse=True):
        result = entry.r
        rows.append(
            (
                run_id,
                entry.t or "",
                "" if result is None else result.should_skip,
                "" if result is None else result.reason,
                "" if result is None or result.skipped_by is None else result.skipped_by,
            )
        )
    typer.echo(f"Ledger {name} (version {data.v}, {len(rows)} entries)")
    typer.echo(
        tabulate(
            rows,
            headers=("Run", "Tree override", "Should skip", "Reason", "Skipped by"),
            tablefmt="github",
        )
    )


def main():
    app()
