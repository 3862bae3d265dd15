"""Templates for generated memcheck configuration files."""

DEFAULT_CONFIG = """# memcheck configuration
# Source tree whose functions count as user code. When unset, the
# environment variable named by root_env is used instead.
root:
root_env: "SCOP_ROOT"
# segment: compare whole path components; prefix: plain string prefix
path_match: "segment"

# Report artifacts
output_dir: "."
csv_name: "static_function_analysis.csv"
json_name: "static_function_analysis.json"
diagnostics: true

# Demangling through llvm-cxxfilt / c++filt (auto-detected when unset)
demangle: true
demangler:

# Disassembler for .bc input (auto-detected when unset)
llvm_dis:

# Pass pipeline and extra pass modules
passes:
  - "memcheck"
pass_plugins: []
"""

MINIMAL_CONFIG = """# memcheck minimal configuration
root: "src"
output_dir: "."
"""

CONFIG_PRESETS = {
    "full": DEFAULT_CONFIG,
    "minimal": MINIMAL_CONFIG,
}
