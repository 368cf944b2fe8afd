# %%

# %% [markdown]
# # Writing SVG
# Each layer becomes one SVG group. A layer table sets the name, colour, opacity and stacking order of the layers; layers missing from the table are drawn in translucent grey.

# %%
from pathlib import Path

import gdstk

from gds2svg.cli import main
from gds2svg.layers import read_layer_config
from gds2svg.reader import read_gds
from gds2svg.svg import write_svg

lib = gdstk.Library("DEMO", unit=1e-6, precision=1e-9)
cell = lib.new_cell("TOP")
cell.add(gdstk.rectangle((0, 0), (40, 20), layer=1))
cell.add(gdstk.rectangle((5, 5), (35, 15), layer=2))
cell.add(gdstk.Label("out", (20, 10), layer=3))
lib.write_gds("layers.gds")

# %% [markdown]
# The layer table has no header. Each line holds the name, the layer number, the colour as RRGGBB hex and the opacity. Layers are stacked in file order, the last line on top:

# %%
Path("layers.csv").write_text("Substrate,1,C0C0C0,1\nMetal,2,0055FF,0.7\n")
layers = read_layer_config("layers.csv")

library = read_gds("layers.gds")
write_svg(library, library.top(), "layers.svg", layers=layers)
print(Path("layers.svg").read_text())

# %% [markdown]
# The same conversion from the command line:
#
# ```
# gds2svg layers.gds --csv layers.csv --svg layers.svg --optimize
# ```

# %%
main(["layers.gds", "--csv", "layers.csv", "--svg", "layers.svg", "--optimize"])
