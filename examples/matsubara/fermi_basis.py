import logging
import time

import numpy as np
import matplotlib.pyplot as plt


def plotErrors(result, filename="basis_error.png"):
    """
    Plot the residual history of the selection
    """
    N = np.arange(1, result.n_basis + 1)
    fig, ax = plt.subplots()
    ax.semilogy(N, result.error, "o-", label="candidates")
    if result.error_l2:
        ax.semilogy(N, result.error_l2, "s--", label="fine grid")
    ax.set_xlabel("basis size")
    ax.set_ylabel("max residual")
    ax.legend()
    fig.savefig(filename)


if __name__ == "__main__":

    import matsubara_qr

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    Lambda = 100.0
    omega = np.linspace(-Lambda, Lambda, num=401)

    mesh_config = matsubara_qr.MeshConfig(Lambda=Lambda, is_fermi=True)
    config = matsubara_qr.QRConfig(rtol=1e-10, dps=40, verbose=True)

    print("selecting Matsubara grid... ")
    start = time.time()
    basis, result = matsubara_qr.build_matsubara_basis(omega, mesh_config, config)
    print("took {:3.3f} sec".format(time.time() - start))

    print("status: {}, N = {}, rtol = {:.3e}".format(
        result.status, result.n_basis, result.achieved_tolerance))

    report = matsubara_qr.check_orthogonality(basis)
    print("max |K - R^H R|     = {:.3e}".format(report.gram_error))
    print("max |Q^H K Q - I|   = {:.3e}".format(report.orthogonality_error))

    matsubara_qr.save_grid("basis_n.dat", result.selected_grid)
    plotErrors(result)
