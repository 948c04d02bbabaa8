"""Template validation command."""

from pathlib import Path

import typer

from ..api.exceptions import ValidationError, VHICliError
from ..utils import console, print_error, print_success, print_warning
from ..utils.template import extract_variables, replace_variables, validate_template
from ._shared import read_ci_data


def validate(
    template_file: Path = typer.Argument(..., help="Template file to check"),
    ci_data: str = typer.Option(None, "--ci-data", help="Template variables as key:value,key:value"),
    ci_data_file: Path = typer.Option(None, "--ci-data-file", help="File with template variables"),
    preview: bool = typer.Option(False, "--preview", help="Show the processed template"),
) -> None:
    """Validate a template and show how its variables would be replaced."""
    try:
        if not template_file.is_file():
            raise ValidationError(f"template file not found: {template_file}")
        values = read_ci_data(ci_data, ci_data_file)
        if not values:
            raise ValidationError("no variables provided, use --ci-data")
        try:
            template = template_file.read_text()
        except OSError as e:
            raise ValidationError(f"failed to read template file: {e}")
    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print("\n[bold]--- Template variables ---[/bold]")
    template_vars = extract_variables(template)
    if not template_vars:
        console.print("No variables found in template")
    for name in template_vars:
        console.print(f"  {{{{%{name}%}}}}", markup=False)

    console.print("\n[bold]--- Provided variables ---[/bold]")
    for key, value in values.items():
        console.print(f"  {key}: {value}", markup=False)

    result = validate_template(template, values)
    if result.missing_variables:
        console.print("\n[bold red]Missing variables[/bold red]")
        for name in result.missing_variables:
            console.print(f"  {{{{%{name}%}}}} is used in template but no value provided", markup=False)
    if result.unused_variables:
        console.print("\n[bold yellow]Unused variables[/bold yellow]")
        for name in result.unused_variables:
            console.print(f"  {name} is provided but not used in template", markup=False)

    if preview and result.valid:
        console.print("\n[bold]--- Processed template preview ---[/bold]")
        console.print(replace_variables(template, values), markup=False, highlight=False)

    console.print("\n[bold]--- Validation result ---[/bold]")
    if not result.valid:
        print_error("Template is invalid (missing required variables)")
        raise typer.Exit(1)
    if result.unused_variables:
        print_warning("Unused variables would be rejected by 'create vm'")
    print_success("Template is valid (all required variables provided)")
