# %%

# %% [markdown]
# # Reading a GDS file
# gds2svg reads a GDSII stream into a `Library` of named structures. Each structure holds its elements (boundaries, paths, texts, boxes, nodes and references to other structures).
#
# First, assume we have a GDS file (here we write a small one with gdstk):

# %%
import gdstk

from gds2svg.reader import read_gds

lib = gdstk.Library("DEMO", unit=1e-6, precision=1e-9)

pad = lib.new_cell("PAD")
pad.add(gdstk.rectangle((0, 0), (10, 10), layer=1))
pad.add(gdstk.rectangle((2, 2), (8, 8), layer=2))

chip = lib.new_cell("CHIP")
for x in range(0, 60, 20):
    chip.add(gdstk.Reference(pad, origin=(x, 0)))
chip.add(gdstk.FlexPath([(5, 5), (45, 5)], 1, layer=3, simple_path=True))
chip.add(gdstk.Label("CHIP", (0, 15), layer=4))

lib.write_gds("demo.gds")

# %% [markdown]
# Reading prints a short summary of the structures when `verbose` is set. The last structure in the file is the default top-level unit:

# %%
library = read_gds("demo.gds", verbose=True)

print(library.name, library.version, library.user_unit, library.database_unit)
print(library.top().name)
print(library.scan_layers())

for element in library["CHIP"].elements:
    print(element.describe())

# %% [markdown]
# Text can be dropped while reading:

# %%
library = read_gds("demo.gds", ignore_text=True)
print(library.scan_layers())
