"""
Module containing the ModelSetup class, used to load in and hold the
configuration used by EADYBGC.
"""

import ast
import importlib.util
import types

# List of safe imports that are allowed in a model setup script.
SAFE_IMPORTS = {
    "eadybgc",
    "numpy",
    "netCDF4",
    "math",
    "scipy",
}
MODULE_NAME = "eadybgc.core.load_model_setup"

# Variables that must be assigned in every model setup script.
REQUIRED_VARS = ("Lx", "Ly", "Lz", "Nx", "Ny", "Nz", "duration")


class ModelSetup:
    """
    Class to load in the model setup from a user-specified Python script.
    Every module-level variable of the script that is not a module, function
    or class becomes an attribute.
    """

    def __init__(self, script_path):
        self.errors = []
        self.script_path = script_path
        print(f"Loading model setup from {self.script_path}")
        # Run validation checks before we use importlib to load it in.
        self.validate_model_setup()
        spec = importlib.util.spec_from_file_location(
            "model_setup", self.script_path
        )
        config_module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(config_module)

        for var_name in dir(config_module):
            # don't load in dunder attributes like __name__
            if var_name.startswith("__"):
                continue
            var_value = getattr(config_module, var_name)
            # don't load in modules, functions or classes
            if not callable(var_value) and not isinstance(
                var_value, types.ModuleType
            ):
                setattr(self, var_name, var_value)

    def validate_model_setup(self):
        """
        Run the validation checks. If any of them fail, report all the
        errors found together.
        """
        method_name = f"{MODULE_NAME}.ModelSetup.validate_model_setup"
        if not self.check_file_exists():
            raise FileNotFoundError(f"{method_name}: {self.errors[0]}")
        tree = self.parse()
        self.check_for_key_variables(tree)
        self.check_for_unexpected_imports(tree)
        if self.errors:
            error_message = "\n".join(self.errors)
            raise ValueError(
                f"{method_name}: Errors found in model setup:\n"
                f"{error_message}"
            )

    def check_file_exists(self):
        """Check to see whether the user-provided runscript exists."""
        try:
            with open(self.script_path, "r", encoding="utf-8") as file:
                file.read()
        except FileNotFoundError:
            self.errors.append(
                f"Path to runscript ({self.script_path}) not found. Please"
                " either run from a directory containing a valid"
                " model_setup.py, or pass the -i flag with a valid runscript"
                " path."
            )
            return False
        return True

    def parse(self):
        with open(self.script_path, "r", encoding="utf-8") as f:
            return ast.parse(f.read(), filename=self.script_path)

    def check_for_key_variables(self, tree):
        """
        Ensure that the grid and duration are defined within the model setup
        script before we import it, so that the model does not progress with
        an incomplete configuration.
        """
        method_name = f"{MODULE_NAME}.ModelSetup.check_for_key_variables"
        read_vars = set()
        # Walk through the AST and find the Assignments.
        for node in ast.walk(tree):
            if isinstance(node, ast.Assign):
                targets = node.targets
            elif isinstance(node, ast.AnnAssign):
                targets = [node.target]
            else:
                continue
            for target in targets:
                if isinstance(target, ast.Name) and target.id in REQUIRED_VARS:
                    read_vars.add(target.id)
                # tuple unpacking, e.g. Nx, Ny, Nz = 64, 64, 16
                elif isinstance(target, ast.Tuple):
                    for element in target.elts:
                        if (
                            isinstance(element, ast.Name)
                            and element.id in REQUIRED_VARS
                        ):
                            read_vars.add(element.id)

        missing_vars = sorted(set(REQUIRED_VARS) - read_vars)
        if missing_vars:
            self.errors.append(
                f"{method_name}: The following required variables are"
                f" missing from the model setup script {self.script_path}:"
                f" {', '.join(missing_vars)}. Please check that"
                f" {self.script_path} is a valid EADYBGC configuration script."
            )

    def check_for_unexpected_imports(self, tree):
        """
        Only certain imports are allowed in a model setup script, so that
        loading it cannot run unexpected code. This means that use of modules
        like "os" and "sys" is not supported in runscripts.

        If you are getting an error here due to a module that you know is safe
        to execute, then add it to SAFE_IMPORTS.
        """
        method_name = f"{MODULE_NAME}.ModelSetup.check_for_unexpected_imports"
        flag = False
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for node_name in node.names:
                    # look at just the top-level module
                    if node_name.name.split(".")[0] not in SAFE_IMPORTS:
                        flag = True
                        self.errors.append(
                            f"{method_name}: Unsafe import '{node_name.name}'"
                            f" found in model setup script {self.script_path}."
                        )
            elif isinstance(node, ast.ImportFrom):
                parent_name = node.module.split(".")[0] if node.module else ""
                if parent_name not in SAFE_IMPORTS:
                    flag = True
                    self.errors.append(
                        f"{method_name}: Unsafe import from '{node.module}'"
                        f" found in model setup script {self.script_path}."
                    )
        if flag:
            self.errors.append(
                "Only the following imports are allowed: "
                f"{', '.join(sorted(SAFE_IMPORTS))}. If you are confident"
                " that your configuration script import(s) are safe, please"
                f" add them to SAFE_IMPORTS in {MODULE_NAME}."
            )


def get_model_setup(model_setup_path):
    """
    Load in the model setup from the specified path,
    and return an instance of the ModelSetup class.
    """
    return ModelSetup(model_setup_path)
