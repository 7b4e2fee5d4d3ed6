import inspect

import flet as ft


def open_confirm_dialog(
    page: ft.Page,
    *,
    title: str,
    message: str,
    confirm_label: str,
    on_confirm,
):
    """Show a modal yes/no dialog; ``on_confirm`` may be sync or async."""

    async def _confirm(e):
        page.close(dlg)
        result = on_confirm(e)
        if inspect.isawaitable(result):
            await result

    dlg = ft.AlertDialog(
        modal=True,
        title=ft.Text(title),
        content=ft.Text(message),
        actions=[
            ft.TextButton("Cancel", on_click=lambda e: page.close(dlg)),
            ft.FilledButton(confirm_label, on_click=_confirm),
        ],
        actions_alignment=ft.MainAxisAlignment.END,
    )
    page.open(dlg)
    return dlg


def show_snack(page: ft.Page, text: str) -> None:
    page.open(ft.SnackBar(ft.Text(text)))
