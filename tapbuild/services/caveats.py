"""安装注意事项渲染"""

from __future__ import annotations

from tapbuild.core.models import BuildContext
from tapbuild.core.receipt import ReceiptStore
from tapbuild.recipes.base import BaseRecipe


def render_caveats(recipe: BaseRecipe, ctx: BuildContext, store: ReceiptStore) -> str:
    """读取依赖安装回执后渲染配方注意事项"""
    receipts = {name: store.load(name) for name in recipe.caveat_dependencies()}
    text = recipe.caveats(ctx, receipts)
    if ctx.formula.keg_only:
        text += (
            f"\n{ctx.formula.name} is keg-only ({ctx.formula.keg_only}); "
            f"it was not linked into {ctx.layout.homebrew_prefix}.\n"
        )
    return text
