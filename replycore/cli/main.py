#!/usr/bin/env python3
"""
replycore - AI reply generation core
Main CLI entry point
"""

import asyncio
import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from replycore import __version__
from replycore.api.client import APIClient
from replycore.application.complexity import ComplexityAnalyzer
from replycore.core.exceptions import ReplyCoreError
from replycore.core.models import ComplexityContext, Message, Role
from replycore.utils.logger import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--api-url', default='http://localhost:8000', help='API server URL')
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, api_url: str):
    """
    replycore - generate safe customer replies with provider fallback

    Examples:
        replycore analyze "Can you compare mainland and freezone licences?"
        replycore reply "Hi, I need a visit visa"
        replycore search "golden visa requirements"
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['api_url'] = api_url
    if verbose:
        setup_logging('DEBUG')


@cli.command()
@click.argument('text', required=True)
@click.option('--lead-stage', help='Lead pipeline stage, e.g. CLOSED')
@click.option('--conversation-length', type=int, help='Messages in the conversation so far')
@click.option('--reasoning', is_flag=True, help='Caller expects explicit reasoning')
@click.option('--format', 'output_format', default='text', type=click.Choice(['json', 'text']))
def analyze(text: str, lead_stage: Optional[str], conversation_length: Optional[int],
            reasoning: bool, output_format: str):
    """Score the complexity of TEXT locally."""
    analyzer = ComplexityAnalyzer()
    messages = [Message(role=Role.USER, content=text)]
    analysis = analyzer.analyze(
        messages,
        ComplexityContext(
            lead_stage=lead_stage,
            conversation_length=conversation_length,
            requires_reasoning=reasoning,
        ),
    )
    task_type = analyzer.detect_task_type(messages, analysis)
    premium = analyzer.requires_premium(analysis)

    if output_format == 'json':
        click.echo(json.dumps({
            'level': analysis.level.value,
            'score': analysis.score,
            'factors': list(analysis.factors),
            'requires_premium': premium,
            'task_type': task_type.value,
        }, indent=2))
        return

    table = Table(title="Complexity analysis")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("level", analysis.level.value)
    table.add_row("score", str(analysis.score))
    table.add_row("factors", ", ".join(analysis.factors) or "-")
    table.add_row("requires premium", "yes" if premium else "no")
    table.add_row("task type", task_type.value)
    console.print(table)


@cli.command()
@click.argument('text', required=True)
@click.option('--no-retrieval', is_flag=True, help='Skip grounding on training documents')
@click.option('--format', 'output_format', default='text', type=click.Choice(['json', 'text']))
@click.pass_context
def reply(ctx: click.Context, text: str, no_retrieval: bool, output_format: str):
    """Generate a reply to the customer message TEXT through the API."""
    history = [{"direction": "inbound", "text": text}]
    response = _run(ctx, "Generating reply...", lambda client: client.reply(history, use_retrieval=not no_retrieval))

    if output_format == 'json':
        click.echo(json.dumps(response, indent=2))
        return

    console.print(response.get('reply', ''))
    style = "yellow" if response.get('needs_human') else "green"
    console.print(
        f"provider={response.get('provider')} service={response.get('service')} "
        f"confidence={response.get('confidence')} needs_human={response.get('needs_human')}",
        style=style,
    )


@cli.command()
@click.argument('query', required=True)
@click.option('--top-k', default=5, help='Maximum documents to return')
@click.option('--threshold', default=0.7, help='Minimum similarity score')
@click.pass_context
def search(ctx: click.Context, query: str, top_k: int, threshold: float):
    """Search training documents for QUERY through the API."""
    response = _run(ctx, "Searching...", lambda client: client.search(query, top_k, threshold))

    documents = response.get('documents', [])
    if not documents:
        console.print("No relevant training documents found", style="yellow")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("Score")
    table.add_column("Title")
    table.add_column("Type")
    for doc in documents:
        table.add_row(f"{doc['score']:.3f}", doc['title'], doc['type'])
    console.print(table)


@cli.command()
@click.pass_context
def health(ctx: click.Context):
    """Show API health and provider availability."""
    response = _run(ctx, "Checking health...", lambda client: client.health_check())

    status = response.get('status', 'unknown')
    console.print(f"Status: {status}", style="green" if status == "healthy" else "yellow")
    table = Table(title="Providers")
    table.add_column("Name")
    table.add_column("Model")
    table.add_column("Available")
    for provider in response.get('providers', []):
        table.add_row(provider['name'], provider['model_id'], "yes" if provider['available'] else "no")
    console.print(table)


def _run(ctx: click.Context, description: str, call):
    """Run an API call with a spinner, exiting with status 1 on failure."""
    try:
        return asyncio.run(_call_api(ctx.obj['api_url'], description, call))
    except ReplyCoreError as e:
        console.print(f"Error: {e}", style="red")
        if ctx.obj.get('verbose'):
            import traceback
            console.print(traceback.format_exc())
        sys.exit(1)


async def _call_api(api_url: str, description: str, call):
    async with APIClient(base_url=api_url) as client:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(description, total=None)
            return await call(client)


if __name__ == '__main__':
    cli()
